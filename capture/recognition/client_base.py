from abc import ABC, abstractmethod

from capture.recognition.models import RecognitionRequest, RecognitionResult


class BaseRecognitionClient(ABC):
    """Contract for provider-specific recognition service clients."""

    @abstractmethod
    def recognize(self, request: RecognitionRequest) -> RecognitionResult:
        """Send one request to the service.

        Raises:
            RecognitionNetworkError: transport failure or server-side error.
            RecognitionValidationError: the service answered with a malformed payload.
        """
