import os
import uuid
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import psycopg
import pytest
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from capture.config.settings import Settings
from capture.database.connection import close_pool, get_connection, init_pool
from capture.database.models import JobFileRecord, JobRecord

_SCHEMA = """
CREATE TABLE IF NOT EXISTS batches (
    id text PRIMARY KEY,
    project_id text NOT NULL,
    total_documents integer NOT NULL DEFAULT 0,
    processed_documents integer NOT NULL DEFAULT 0,
    created_at timestamptz NOT NULL DEFAULT NOW(),
    updated_at timestamptz NOT NULL DEFAULT NOW()
);
CREATE TABLE IF NOT EXISTS documents (
    id bigserial PRIMARY KEY,
    batch_id text NOT NULL REFERENCES batches (id) ON DELETE CASCADE,
    name text NOT NULL,
    kind text NOT NULL,
    content_ref text NOT NULL,
    text text NOT NULL DEFAULT '',
    metadata jsonb NOT NULL DEFAULT '{}',
    line_items jsonb NOT NULL DEFAULT '[]',
    created_at timestamptz NOT NULL DEFAULT NOW()
);
CREATE TABLE IF NOT EXISTS licenses (
    id text PRIMARY KEY,
    total_documents integer NOT NULL,
    remaining_documents integer NOT NULL CHECK (remaining_documents >= 0),
    status text NOT NULL DEFAULT 'active',
    end_date timestamptz,
    updated_at timestamptz NOT NULL DEFAULT NOW()
);
CREATE TABLE IF NOT EXISTS license_usage (
    license_id text NOT NULL REFERENCES licenses (id) ON DELETE CASCADE,
    document_id text NOT NULL,
    documents_used integer NOT NULL,
    created_at timestamptz NOT NULL DEFAULT NOW(),
    PRIMARY KEY (license_id, document_id)
);
CREATE TABLE IF NOT EXISTS ingestion_jobs (
    id bigserial PRIMARY KEY,
    project_id text,
    batch_id text,
    status text NOT NULL DEFAULT 'pending',
    attempts integer NOT NULL DEFAULT 0,
    options jsonb NOT NULL DEFAULT '{}',
    error_message text,
    summary jsonb,
    locked_at timestamptz,
    created_at timestamptz NOT NULL DEFAULT NOW(),
    updated_at timestamptz NOT NULL DEFAULT NOW()
);
CREATE TABLE IF NOT EXISTS ingestion_job_files (
    id bigserial PRIMARY KEY,
    job_id bigint NOT NULL REFERENCES ingestion_jobs (id) ON DELETE CASCADE,
    file_name text NOT NULL,
    mime_type text NOT NULL,
    storage_path text NOT NULL,
    position integer NOT NULL DEFAULT 0
);
"""

# Children first so foreign keys never block the cleanup.
_CLEANUP_ORDER = ("ingestion_jobs", "license_usage", "licenses", "documents", "batches")


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "capture_test")
    return Settings(inter_item_delay_seconds=0, recognition_provider="example")


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        with get_connection() as conn:
            conn.execute(_SCHEMA)
            conn.commit()
    except Exception as e:
        close_pool()
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a disposable database"
        )
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_cleanup(
    integration_pool: None,
) -> Generator[list[tuple[str, Any]], None, None]:
    cleanup: list[tuple[str, Any]] = []
    yield cleanup
    if not cleanup:
        return
    with get_connection() as conn:
        with conn.cursor() as cur:
            for table in _CLEANUP_ORDER:
                for cleanup_table, row_id in cleanup:
                    if cleanup_table != table:
                        continue
                    if table == "license_usage":
                        cur.execute("DELETE FROM license_usage WHERE license_id = %s", (row_id,))
                    else:
                        cur.execute(
                            sql.SQL("DELETE FROM {} WHERE id = %s").format(sql.Identifier(table)),
                            (row_id,),
                        )
        conn.commit()


@pytest.fixture
def seed_batch(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, Any]],
) -> str:
    batch_id = str(uuid.uuid4())
    db_conn.execute(
        "INSERT INTO batches (id, project_id) VALUES (%s, %s)",
        (batch_id, "project-1"),
    )
    db_conn.commit()
    integration_cleanup.append(("batches", batch_id))
    return batch_id


@pytest.fixture
def make_license(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, Any]],
) -> Callable[..., str]:
    def _make(remaining: int, status: str = "active", end_date: Any = None) -> str:
        license_id = str(uuid.uuid4())
        db_conn.execute(
            """
            INSERT INTO licenses (id, total_documents, remaining_documents, status, end_date)
            VALUES (%s, %s, %s, %s, %s)
            """,
            (license_id, max(remaining, 1), remaining, status, end_date),
        )
        db_conn.commit()
        integration_cleanup.append(("license_usage", license_id))
        integration_cleanup.append(("licenses", license_id))
        return license_id

    return _make


@pytest.fixture
def make_job(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, Any]],
) -> Callable[..., JobRecord]:
    def _make(
        batch_id: str | None,
        attempts: int = 0,
        options: dict[str, Any] | None = None,
    ) -> JobRecord:
        with db_conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                """
                INSERT INTO ingestion_jobs (project_id, batch_id, status, attempts, options)
                VALUES (%s, %s, 'pending', %s, %s)
                RETURNING id
                """,
                ("project-1", batch_id, attempts, Jsonb(options or {})),
            )
            row = cur.fetchone()
            assert row is not None
        db_conn.commit()
        integration_cleanup.append(("ingestion_jobs", row["id"]))
        return JobRecord(
            id=row["id"],
            project_id="project-1",
            batch_id=batch_id,
            status="pending",
            attempts=attempts,
            options=options or {},
        )

    return _make


@pytest.fixture
def seed_job(seed_batch: str, make_job: Callable[..., JobRecord]) -> JobRecord:
    return make_job(seed_batch)


@pytest.fixture
def files_root(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def attach_file(
    db_conn: psycopg.Connection[Any],
    files_root: Path,
) -> Callable[..., JobFileRecord]:
    """Write bytes under the files root and register them as a job file."""

    def _attach(
        job: JobRecord,
        file_name: str,
        mime_type: str,
        data: bytes | None,
        position: int = 0,
    ) -> JobFileRecord:
        storage_path = f"{job.batch_id}/{uuid.uuid4()}_{file_name}"
        if data is not None:
            path = files_root / storage_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        with db_conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO ingestion_job_files
                    (job_id, file_name, mime_type, storage_path, position)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING id
                """,
                (job.id, file_name, mime_type, storage_path, position),
            )
            row = cur.fetchone()
            assert row is not None
        db_conn.commit()
        return JobFileRecord(
            id=row[0],
            job_id=job.id,
            file_name=file_name,
            mime_type=mime_type,
            storage_path=storage_path,
            position=position,
        )

    return _attach
