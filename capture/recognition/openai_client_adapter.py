import json
from pathlib import Path
from typing import Any

import httpx
import openai

from capture.recognition.client_base import BaseRecognitionClient
from capture.recognition.exceptions import (
    RecognitionNetworkError,
    RecognitionValidationError,
)
from capture.recognition.models import RecognitionRequest, RecognitionResult
from capture.recognition.prompt_loader import load_json_schema, load_prompt_template
from capture.recognition.validator import validate_and_build

_CHECKED_FIELDS_INSTRUCTION = (
    "The document may be a bank check. Also extract the MICR line into the "
    "metadata fields micr_routing_number, micr_account_number and micr_check_number."
)
_IMAGE_PLACEHOLDER = "(see attached image)"


class OpenAIClientAdapter(BaseRecognitionClient):
    """Recognition client built on the OpenAI-compatible chat API (text and vision)."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout_seconds: int,
        base_url: str | None = None,
        temperature: float = 0.0,
        prompt_template_path: Path | None = None,
        json_schema_path: Path | None = None,
    ) -> None:
        self._client = openai.OpenAI(
            api_key=api_key,
            timeout=timeout_seconds,
            base_url=base_url,
        )
        self._model = model
        self._temperature = max(0.0, min(0.2, temperature))
        self._prompt_template = load_prompt_template(prompt_template_path)
        self._json_schema = load_json_schema(json_schema_path)
        self._json_schema_dict = json.loads(self._json_schema)

    def recognize(self, request: RecognitionRequest) -> RecognitionResult:
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                temperature=self._temperature,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": "recognition_result",
                        "strict": False,
                        "schema": self._json_schema_dict,
                    },
                },
                messages=[{"role": "user", "content": self._build_content(request)}],
            )
        except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
            raise RecognitionNetworkError(f"AI provider network error: {exc}") from exc
        except openai.APIError as exc:
            raise RecognitionNetworkError(f"AI provider API error: {exc}") from exc

        if not response.choices:
            raise RecognitionValidationError("AI returned no choices")
        content = response.choices[0].message.content
        if content is None:
            raise RecognitionValidationError("AI returned empty response")
        return validate_and_build(self._parse_json(content))

    def _build_content(self, request: RecognitionRequest) -> str | list[dict[str, Any]]:
        prompt = self._prompt_template.format(
            extraction_fields=json.dumps(list(request.extraction_fields)),
            table_fields=json.dumps(list(request.table_fields)),
            checked_fields_instruction=(
                _CHECKED_FIELDS_INSTRUCTION if request.checked_fields_enabled else ""
            ),
            json_schema=self._json_schema,
            document_text=request.text if request.text is not None else _IMAGE_PLACEHOLDER,
        )
        if request.image is None:
            return prompt
        return [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": request.image}},
        ]

    @staticmethod
    def _parse_json(raw: str) -> Any:
        cleaned = raw.strip()
        if cleaned.startswith("```"):
            lines = cleaned.splitlines()
            if lines and lines[0].startswith("```"):
                lines = lines[1:]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            cleaned = "\n".join(lines)

        try:
            return json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise RecognitionValidationError(f"Invalid JSON response: {exc}") from exc
