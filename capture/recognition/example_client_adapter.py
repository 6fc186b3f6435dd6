"""Example recognition client adapter.

Use this module as a reference when implementing new provider adapters.
Implement BaseRecognitionClient and register the provider in RecognitionClientFactory.
"""

from typing import ClassVar

from capture.recognition.client_base import BaseRecognitionClient
from capture.recognition.models import RecognitionRequest, RecognitionResult
from capture.recognition.validator import validate_and_build


class ExampleClientAdapter(BaseRecognitionClient):
    """Example adapter that echoes text requests and returns fixed metadata.

    No network calls. Useful for local development and tests.
    """

    DEFAULT_RESPONSE: ClassVar[dict[str, object]] = {
        "text": "",
        "metadata": {},
        "lineItems": [],
    }

    def recognize(self, request: RecognitionRequest) -> RecognitionResult:
        response = dict(self.DEFAULT_RESPONSE)
        if request.text is not None:
            response["text"] = request.text
        response["metadata"] = {
            str(field.get("name")): "" for field in request.extraction_fields if field.get("name")
        }
        return validate_and_build(response)
