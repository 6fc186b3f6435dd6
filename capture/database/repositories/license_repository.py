from psycopg.rows import dict_row

from capture.database.connection import get_connection
from capture.logging.logger import Log
from capture.quota.base import BaseQuotaService
from capture.quota.models import Quota


class LicenseRepository(BaseQuotaService):
    """Quota backed by the licenses and license_usage tables.

    Consumption is a single conditional UPDATE, so concurrent workers and
    other sessions can never drive remaining_documents below zero.
    """

    def __init__(self, license_id: str) -> None:
        self._license_id = license_id

    def find_quota(self) -> Quota | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT total_documents, remaining_documents, status, end_date
                    FROM licenses
                    WHERE id = %s
                    """,
                    (self._license_id,),
                )
                row = cur.fetchone()

        if row is None:
            return None

        return Quota(
            total=row["total_documents"],
            remaining=row["remaining_documents"],
            expires_at=row["end_date"],
            status=row["status"],
        )

    def has_capacity(self, count: int) -> bool:
        quota = self.find_quota()
        if quota is None:
            Log.warning(f"License {self._license_id} not found")
            return False
        return quota.is_usable() and quota.remaining >= count

    def consume(self, document_id: str, count: int) -> bool:
        """Decrement the license for a saved document. Idempotent per document id."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO license_usage (license_id, document_id, documents_used)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (license_id, document_id) DO NOTHING
                    """,
                    (self._license_id, document_id, count),
                )
                if cur.rowcount == 0:
                    conn.rollback()
                    return True

                cur.execute(
                    """
                    UPDATE licenses
                    SET remaining_documents = remaining_documents - %s,
                        updated_at = NOW()
                    WHERE id = %s
                      AND status = 'active'
                      AND (end_date IS NULL OR end_date > NOW())
                      AND remaining_documents >= %s
                    """,
                    (count, self._license_id, count),
                )
                if cur.rowcount == 0:
                    conn.rollback()
                    return False
            conn.commit()
        return True
