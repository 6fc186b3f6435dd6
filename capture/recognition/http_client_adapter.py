import httpx

from capture.recognition.client_base import BaseRecognitionClient
from capture.recognition.exceptions import RecognitionNetworkError, RecognitionValidationError
from capture.recognition.models import RecognitionRequest, RecognitionResult
from capture.recognition.validator import validate_and_build


class HttpClientAdapter(BaseRecognitionClient):
    """Recognition client for the capture OCR endpoint over HTTP/JSON."""

    def __init__(
        self,
        *,
        url: str,
        timeout_seconds: int,
        api_key: str = "",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._url = url
        self._client = httpx.Client(
            timeout=timeout_seconds,
            headers=headers,
            transport=transport,
        )

    def recognize(self, request: RecognitionRequest) -> RecognitionResult:
        try:
            response = self._client.post(self._url, json=request.to_payload())
        except httpx.TransportError as exc:
            raise RecognitionNetworkError(f"Recognition service network error: {exc}") from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise RecognitionNetworkError(
                f"Recognition service HTTP {response.status_code}: {response.text[:200]}"
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise RecognitionValidationError(
                f"Recognition service returned non-JSON body (HTTP {response.status_code})"
            ) from exc
        if response.status_code >= 400:
            message = body.get("error") if isinstance(body, dict) else None
            raise RecognitionValidationError(
                f"Recognition service rejected request (HTTP {response.status_code}): "
                f"{message or response.text[:200]}"
            )
        return validate_and_build(body)

    def close(self) -> None:
        self._client.close()
