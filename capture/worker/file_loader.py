from pathlib import Path

from capture.database.models import JobFileRecord
from capture.ingestion.models import UploadUnit
from capture.worker.exceptions import UnsafeStoragePathError


def job_file_path(files_root: Path, storage_path: str) -> Path:
    """Resolve a stored file path under {files_root}."""
    return files_root / storage_path


class FileLoader:
    """Resolves filesystem paths for a job's uploaded files and reads their bytes."""

    FILES_ROOT = Path("/app/files")

    def __init__(self, files_root: Path | None = None) -> None:
        self._files_root = files_root if files_root is not None else self.FILES_ROOT

    def load(self, record: JobFileRecord) -> UploadUnit:
        """Read one uploaded file from disk.

        Raises:
            FileNotFoundError: if the file does not exist at resolved path.
            UnsafeStoragePathError: if the stored path escapes the files root.
        """
        path = self._resolve_path(record)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        return UploadUnit(name=record.file_name, mime_type=record.mime_type, data=path.read_bytes())

    def load_all(self, records: list[JobFileRecord]) -> list[UploadUnit]:
        return [self.load(record) for record in records]

    def _resolve_path(self, record: JobFileRecord) -> Path:
        root = self._files_root.resolve()
        path = job_file_path(root, record.storage_path).resolve()
        if not path.is_relative_to(root):
            raise UnsafeStoragePathError(
                f"storage_path '{record.storage_path}' is outside the files root"
            )
        return path
