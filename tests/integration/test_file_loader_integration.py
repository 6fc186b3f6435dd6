from collections.abc import Callable
from pathlib import Path

import pytest

from capture.database.models import JobFileRecord, JobRecord
from capture.database.repositories.job_repository import JobRepository
from capture.worker.file_loader import FileLoader


@pytest.mark.integration
class TestFileLoaderLoad:
    def test_load_returns_registered_files(
        self,
        seed_job: JobRecord,
        attach_file: Callable[..., JobFileRecord],
        files_root: Path,
        sample_pdf_bytes: bytes,
        png_bytes: bytes,
    ) -> None:
        attach_file(seed_job, "invoice.pdf", "application/pdf", sample_pdf_bytes, position=0)
        attach_file(seed_job, "photo.png", "image/png", png_bytes, position=1)
        records = JobRepository(max_attempts=3).list_files(seed_job.id)

        units = FileLoader(files_root=files_root).load_all(records)

        assert [u.name for u in units] == ["invoice.pdf", "photo.png"]
        assert units[0].data == sample_pdf_bytes
        assert units[1].data == png_bytes

    def test_load_raises_file_not_found(
        self,
        seed_job: JobRecord,
        attach_file: Callable[..., JobFileRecord],
        files_root: Path,
    ) -> None:
        record = attach_file(seed_job, "gone.pdf", "application/pdf", None)

        with pytest.raises(FileNotFoundError, match="File not found"):
            FileLoader(files_root=files_root).load(record)
