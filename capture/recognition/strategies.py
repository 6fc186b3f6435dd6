"""Ordered recognition strategies: extracted text first, rendered image second.

Each strategy either produces a result, reports a terminal failure, or skips
so the next strategy is tried.
"""

from abc import ABC, abstractmethod
from enum import Enum

from capture.imaging.exceptions import ImageNormalizationError
from capture.imaging.normalizer import ImageNormalizer, NormalizedImage
from capture.ingestion.errors import ErrorKind, Failure
from capture.ingestion.models import FileKind, IngestionContext, LogicalDocument
from capture.logging.logger import Log
from capture.pdf.base import BasePdfReader
from capture.pdf.exceptions import PdfExtractionError
from capture.recognition.models import RecognitionResult
from capture.recognition.recognizer import RecognitionClient


class Skip(Enum):
    SKIP = "skip"


SKIP = Skip.SKIP

StrategyOutcome = RecognitionResult | Failure | Skip


class RecognitionStrategy(ABC):
    name: str = ""

    @abstractmethod
    def attempt(self, document: LogicalDocument, context: IngestionContext) -> StrategyOutcome:
        raise NotImplementedError


class TextStrategy(RecognitionStrategy):
    """Sends the PDF's text layer when it holds enough characters."""

    name = "text"

    def __init__(
        self,
        recognizer: RecognitionClient,
        reader: BasePdfReader,
        *,
        min_text_length: int = 10,
        max_text_pages: int = 5,
    ) -> None:
        self._recognizer = recognizer
        self._reader = reader
        self._min_text_length = min_text_length
        self._max_text_pages = max_text_pages

    def attempt(self, document: LogicalDocument, context: IngestionContext) -> StrategyOutcome:
        if document.kind != FileKind.PDF:
            return SKIP

        last_page = min(document.end_page, document.start_page + self._max_text_pages - 1)
        if document.page_texts:
            text = "\n".join(document.page_texts[: last_page - document.start_page + 1]).strip()
        else:
            try:
                text = self._reader.extract(document.source.data, document.start_page, last_page)
            except PdfExtractionError as exc:
                Log.warning(f"Text extraction failed for {document.name}: {exc}")
                return SKIP

        if len(text.strip()) < self._min_text_length:
            Log.debug(f"{document.name}: {len(text.strip())} chars of text, falling back to image")
            return SKIP

        outcome = self._recognizer.recognize(context.text_request(text))
        if isinstance(outcome, RecognitionResult) and not outcome.has_data:
            Log.info(f"{document.name}: text recognition returned no data")
            return SKIP
        return outcome


class ImageFallbackStrategy(RecognitionStrategy):
    """Rasterizes the document and sends an image-mode request."""

    name = "image"

    def __init__(self, recognizer: RecognitionClient, normalizer: ImageNormalizer) -> None:
        self._recognizer = recognizer
        self._normalizer = normalizer

    def attempt(self, document: LogicalDocument, context: IngestionContext) -> StrategyOutcome:
        try:
            image = self._rasterize(document)
        except ImageNormalizationError as exc:
            return Failure(kind=ErrorKind.CORRUPT_DOCUMENT, message=str(exc))
        if image is None:
            return SKIP
        Log.debug(f"{document.name}: rasterized to {image.width}x{image.height}")
        return self._recognizer.recognize(context.image_request(image.to_data_url()))

    def _rasterize(self, document: LogicalDocument) -> NormalizedImage | None:
        data = document.source.data
        if document.kind == FileKind.PDF:
            return self._normalizer.render_pdf_page(data, document.start_page)
        if document.kind == FileKind.TIFF:
            return self._normalizer.normalize(self._normalizer.convert_tiff(data))
        if document.kind == FileKind.IMAGE:
            return self._normalizer.normalize(data)
        return None


class StrategyChain:
    """Runs strategies in order until one produces a result or a failure."""

    def __init__(self, strategies: list[RecognitionStrategy]) -> None:
        self._strategies = strategies

    def run(
        self, document: LogicalDocument, context: IngestionContext
    ) -> RecognitionResult | Failure:
        for strategy in self._strategies:
            outcome = strategy.attempt(document, context)
            if isinstance(outcome, Skip):
                continue
            if isinstance(outcome, RecognitionResult):
                Log.info(f"{document.name}: recognized via {strategy.name} strategy")
            return outcome
        return Failure(
            kind=ErrorKind.RECOGNITION_UNAVAILABLE,
            message="No recognition strategy could handle the document",
        )
