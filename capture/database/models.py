from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class JobRecord:
    """Represents a row from the ingestion_jobs table."""

    id: int
    project_id: str | None
    batch_id: str | None
    status: str
    attempts: int
    options: dict[str, Any] = field(default_factory=dict)
    error_message: str | None = None
    summary: dict[str, Any] | None = None
    locked_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class JobFileRecord:
    """Represents a row from the ingestion_job_files table."""

    id: int
    job_id: int
    file_name: str
    mime_type: str
    storage_path: str
    position: int = 0

