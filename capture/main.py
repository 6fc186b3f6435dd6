import signal
from pathlib import Path
from types import FrameType

from capture.config.settings import Settings
from capture.database.connection import close_pool, init_pool
from capture.database.repositories.job_repository import JobRepository
from capture.ingestion.orchestrator import build_orchestrator
from capture.logging.logger import Log
from capture.worker.file_loader import FileLoader
from capture.worker.job_runner import JobRunner
from capture.worker.worker import Worker


def main() -> None:
    """Entry point: initialize pool -> build dependencies -> start worker loop."""
    settings = Settings()
    Log.configure(settings.log_level)
    init_pool(settings)

    try:
        orchestrator = build_orchestrator(settings)
        job_repo = JobRepository(settings.max_job_attempts)
        file_loader = FileLoader(files_root=Path(settings.files_root))
        job_runner = JobRunner(orchestrator, job_repo, file_loader, settings)
        worker = Worker(job_repo, job_runner, settings)

        def _on_sigterm(signum: int, frame: FrameType | None) -> None:
            Log.info("SIGTERM received, finishing current job")
            worker.stop()

        signal.signal(signal.SIGTERM, _on_sigterm)
        worker.run()
    finally:
        close_pool()


if __name__ == "__main__":
    main()
