"""Retrying wrapper around a recognition service client."""

import json
import time
from collections.abc import Callable

from capture.ingestion.errors import ErrorKind, Failure
from capture.logging.logger import Log
from capture.recognition.client_base import BaseRecognitionClient
from capture.recognition.exceptions import RecognitionError, RecognitionValidationError
from capture.recognition.models import RecognitionRequest, RecognitionResult


class RecognitionClient:
    """Calls the service with linear backoff; returns a result or a typed failure.

    ``max_retries`` is the total number of calls made before giving up. The
    delay before attempt ``n + 1`` is ``n * base_delay_seconds``.
    """

    def __init__(
        self,
        client: BaseRecognitionClient,
        *,
        max_retries: int = 3,
        base_delay_seconds: float = 1.0,
        max_payload_bytes: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._client = client
        self._max_retries = max_retries
        self._base_delay = base_delay_seconds
        self._max_payload_bytes = max_payload_bytes
        self._sleep = sleep

    def recognize(
        self,
        request: RecognitionRequest,
        max_retries: int | None = None,
    ) -> RecognitionResult | Failure:
        attempts = self._max_retries if max_retries is None else max_retries
        if attempts < 1:
            raise ValueError("max_retries must be at least 1")

        too_large = self._check_payload_size(request)
        if too_large is not None:
            return too_large

        last_error: RecognitionError | None = None
        for attempt in range(1, attempts + 1):
            try:
                result = self._client.recognize(request)
            except RecognitionError as exc:
                last_error = exc
                Log.warning(
                    f"Recognition attempt {attempt}/{attempts} ({request.mode}) failed: {exc}"
                )
                if attempt < attempts:
                    self._sleep(attempt * self._base_delay)
                continue
            if attempt > 1:
                Log.info(f"Recognition succeeded on attempt {attempt}")
            return result

        assert last_error is not None
        kind = (
            ErrorKind.INVALID_RESPONSE
            if isinstance(last_error, RecognitionValidationError)
            else ErrorKind.RECOGNITION_UNAVAILABLE
        )
        return Failure(
            kind=kind,
            message=f"Recognition failed after {attempts} attempts: {last_error}",
        )

    def _check_payload_size(self, request: RecognitionRequest) -> Failure | None:
        if self._max_payload_bytes is None:
            return None
        size = len(json.dumps(request.to_payload()).encode("utf-8"))
        if size <= self._max_payload_bytes:
            return None
        return Failure(
            kind=ErrorKind.PAYLOAD_TOO_LARGE,
            message=f"Request payload of {size} bytes exceeds limit of {self._max_payload_bytes}",
        )
