class PersistenceError(Exception):
    """Raised when a document or its content cannot be stored."""


class BatchNotFoundError(PersistenceError):
    """Raised when the target batch no longer exists."""
