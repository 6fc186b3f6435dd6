import uuid
from pathlib import Path, PurePath

from capture.persistence.exceptions import PersistenceError


def content_file_path(files_root: Path, batch_id: str, content_id: str, suffix: str) -> Path:
    """Build path to stored content: {files_root}/{batch_id}/{content_id}{suffix}"""
    return files_root / batch_id / f"{content_id}{suffix}"


class FileStore:
    """Writes logical document content to local storage and returns its reference."""

    FILES_ROOT = Path("/app/files")

    def __init__(self, files_root: Path | None = None) -> None:
        self._files_root = files_root if files_root is not None else self.FILES_ROOT

    def store(self, batch_id: str, name: str, data: bytes) -> str:
        """Write ``data`` and return its path relative to the files root.

        Raises:
            PersistenceError: if the file cannot be written.
        """
        suffix = PurePath(name).suffix.lower() or ".bin"
        path = content_file_path(self._files_root, batch_id, str(uuid.uuid4()), suffix)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise PersistenceError(f"Cannot store content for {name}: {exc}") from exc
        return str(path.relative_to(self._files_root))

    def load(self, content_ref: str) -> bytes:
        """Read previously stored content.

        Raises:
            FileNotFoundError: if nothing is stored under ``content_ref``.
        """
        path = self._files_root / content_ref
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        return path.read_bytes()

    def delete(self, content_ref: str) -> None:
        """Remove stored content. Missing files are ignored."""
        (self._files_root / content_ref).unlink(missing_ok=True)
