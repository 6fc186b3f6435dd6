from typing import Any

from psycopg.types.json import Jsonb

from capture.database.connection import get_connection
from capture.persistence.base import PersistenceGateway
from capture.persistence.exceptions import BatchNotFoundError, PersistenceError


class DocumentsRepository(PersistenceGateway):
    """Database operations for the batches and documents tables."""

    def batch_exists(self, batch_id: str) -> bool:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1 FROM batches WHERE id = %s", (batch_id,))
                return cur.fetchone() is not None

    def save_document(
        self,
        batch_id: str,
        name: str,
        kind: str,
        content_ref: str,
        text: str,
        metadata: dict[str, Any],
        line_items: list[dict[str, Any]],
    ) -> str:
        """Insert a document row and return its id.

        Raises:
            BatchNotFoundError: if the batch was deleted in the meantime.
            PersistenceError: if the insert returned no id.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO documents
                        (batch_id, name, kind, content_ref, text, metadata, line_items)
                    SELECT b.id, %s, %s, %s, %s, %s, %s
                    FROM batches b
                    WHERE b.id = %s
                    RETURNING id
                    """,
                    (
                        name,
                        kind,
                        content_ref,
                        text,
                        Jsonb(metadata),
                        Jsonb(line_items),
                        batch_id,
                    ),
                )
                row = cur.fetchone()
                if cur.rowcount == 0:
                    raise BatchNotFoundError(f"Batch {batch_id} not found")
            conn.commit()

        if row is None:
            raise PersistenceError(f"Document {name} was not stored")
        return str(row[0])

    def increment_batch_counters(self, batch_id: str) -> None:
        """Add one to the batch's counters in a single statement.

        Raises:
            BatchNotFoundError: if no batch with this ID exists.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE batches
                    SET total_documents = total_documents + 1,
                        processed_documents = processed_documents + 1,
                        updated_at = NOW()
                    WHERE id = %s
                    """,
                    (batch_id,),
                )
                if cur.rowcount == 0:
                    raise BatchNotFoundError(f"Batch {batch_id} not found")
            conn.commit()
