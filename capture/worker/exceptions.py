class WorkerError(Exception):
    """Base exception for job worker errors."""


class JobFilesMissingError(WorkerError):
    """Raised when a job has no uploaded files attached."""


class UnsafeStoragePathError(WorkerError):
    """Raised when a stored file path points outside the files root."""
