import io
import threading
from typing import Any

from PIL import Image
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from capture.persistence.base import PersistenceGateway
from capture.persistence.exceptions import BatchNotFoundError


def build_pdf(page_texts: list[str]) -> bytes:
    """Generate a PDF with one page per entry; an empty entry is a blank page."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    for text in page_texts:
        if text:
            c.drawString(72, 720, text)
        c.showPage()
    c.save()
    return buf.getvalue()


def build_image(
    width: int,
    height: int,
    fmt: str = "PNG",
    mode: str = "RGB",
    color: int | tuple[int, ...] = (200, 30, 30),
) -> bytes:
    buf = io.BytesIO()
    Image.new(mode, (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


class InMemoryGateway(PersistenceGateway):
    """Records saved documents in memory; the batch can be deleted mid-run."""

    def __init__(self, batch_ids: set[str] | None = None) -> None:
        self.batch_ids = set(batch_ids if batch_ids is not None else {"batch-1"})
        self.documents: list[dict[str, Any]] = []
        self.counters: dict[str, int] = {}
        self._lock = threading.Lock()

    def batch_exists(self, batch_id: str) -> bool:
        with self._lock:
            return batch_id in self.batch_ids

    def delete_batch(self, batch_id: str) -> None:
        with self._lock:
            self.batch_ids.discard(batch_id)

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
        with self._lock:
            if batch_id not in self.batch_ids:
                raise BatchNotFoundError(f"Batch {batch_id} not found")
            document_id = f"doc-{len(self.documents) + 1}"
            self.documents.append(
                {
                    "id": document_id,
                    "batch_id": batch_id,
                    "name": name,
                    "kind": kind,
                    "content_ref": content_ref,
                    "text": text,
                    "metadata": metadata,
                    "line_items": line_items,
                }
            )
            return document_id

    def increment_batch_counters(self, batch_id: str) -> None:
        with self._lock:
            self.counters[batch_id] = self.counters.get(batch_id, 0) + 1

    @property
    def saved_names(self) -> list[str]:
        with self._lock:
            return [document["name"] for document in self.documents]
