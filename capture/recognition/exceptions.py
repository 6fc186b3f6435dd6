class RecognitionError(Exception):
    """Raised when recognition fails."""


class RecognitionValidationError(RecognitionError):
    """Raised when the service response does not have the expected shape."""


class RecognitionNetworkError(RecognitionError):
    """Raised when the recognition service is unreachable or returns a server error."""
