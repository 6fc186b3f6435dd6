from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from capture.database.connection import get_connection
from capture.database.models import JobFileRecord, JobRecord


class JobRepository:
    """Database operations for the ingestion_jobs and ingestion_job_files tables."""

    def __init__(self, max_attempts: int) -> None:
        self._max_attempts = max_attempts

    def claim_next_job(self, conn: psycopg.Connection[Any]) -> JobRecord | None:
        """Claim the next pending job using SELECT FOR UPDATE SKIP LOCKED."""
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                """
                SELECT id, project_id, batch_id, status, attempts, options
                FROM ingestion_jobs
                WHERE status = 'pending'
                  AND attempts < %s
                ORDER BY created_at
                LIMIT 1
                FOR UPDATE SKIP LOCKED
                """,
                (self._max_attempts,),
            )
            row = cur.fetchone()

        if row is None:
            return None

        conn.execute(
            """
            UPDATE ingestion_jobs
            SET status = 'processing', locked_at = NOW(), updated_at = NOW()
            WHERE id = %s
            """,
            (row["id"],),
        )
        conn.commit()

        return JobRecord(
            id=row["id"],
            project_id=_optional_str(row["project_id"]),
            batch_id=_optional_str(row["batch_id"]),
            status="processing",
            attempts=row["attempts"],
            options=row["options"] or {},
        )

    def list_files(self, job_id: int) -> list[JobFileRecord]:
        """Return the job's uploaded files in submission order."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, job_id, file_name, mime_type, storage_path, position
                    FROM ingestion_job_files
                    WHERE job_id = %s
                    ORDER BY position, id
                    """,
                    (job_id,),
                )
                rows = cur.fetchall()

        return [
            JobFileRecord(
                id=row["id"],
                job_id=row["job_id"],
                file_name=row["file_name"],
                mime_type=row["mime_type"],
                storage_path=row["storage_path"],
                position=row["position"],
            )
            for row in rows
        ]

    def mark_done(self, job_id: int, summary: dict[str, Any]) -> None:
        """Mark a job as done and store the run report summary."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE ingestion_jobs
                SET status = 'done', summary = %s, updated_at = NOW()
                WHERE id = %s
                """,
                (Jsonb(summary), job_id),
            )
            conn.commit()

    def mark_failed(
        self,
        job_id: int,
        error: str,
        summary: dict[str, Any] | None = None,
    ) -> None:
        """Mark a job as permanently failed."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE ingestion_jobs
                SET status = 'failed', error_message = %s, summary = %s,
                    updated_at = NOW()
                WHERE id = %s
                """,
                (error, Jsonb(summary) if summary is not None else None, job_id),
            )
            conn.commit()

    def increment_attempts(self, job_id: int) -> None:
        """Increment attempt count and return job to pending."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE ingestion_jobs
                SET attempts = attempts + 1, status = 'pending',
                    locked_at = NULL, updated_at = NOW()
                WHERE id = %s
                """,
                (job_id,),
            )
            conn.commit()

    def find_by_id(self, job_id: int) -> JobRecord | None:
        """Find a job by ID. Useful for tests."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, project_id, batch_id, status, attempts, options,
                           error_message, summary, locked_at, created_at, updated_at
                    FROM ingestion_jobs
                    WHERE id = %s
                    """,
                    (job_id,),
                )
                row = cur.fetchone()

        if row is None:
            return None

        return JobRecord(
            id=row["id"],
            project_id=_optional_str(row["project_id"]),
            batch_id=_optional_str(row["batch_id"]),
            status=row["status"],
            attempts=row["attempts"],
            options=row["options"] or {},
            error_message=row["error_message"],
            summary=row["summary"],
            locked_at=row["locked_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


def _optional_str(value: Any) -> str | None:
    return str(value) if value is not None else None
