from typing import ClassVar

from capture.config.settings import Settings
from capture.recognition.client_base import BaseRecognitionClient
from capture.recognition.example_client_adapter import ExampleClientAdapter
from capture.recognition.http_client_adapter import HttpClientAdapter
from capture.recognition.openai_client_adapter import OpenAIClientAdapter


class RecognitionClientFactory:
    """Creates the configured recognition service client."""

    OPENAI_COMPATIBLE_BASE_URLS: ClassVar[dict[str, str]] = {
        "openrouter": "https://openrouter.ai/api/v1",
        "groq": "https://api.groq.com/openai/v1",
        "together": "https://api.together.xyz/v1",
        "ollama": "http://localhost:11434/v1",
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseRecognitionClient:
        """Create a recognition client from application settings."""
        provider = settings.recognition_provider.lower()
        if provider == "example":
            return ExampleClientAdapter()
        if provider == "http":
            url = settings.recognition_http_url.strip()
            if not url:
                raise ValueError("recognition_http_url is required for recognition_provider=http")
            return HttpClientAdapter(
                url=url,
                timeout_seconds=settings.recognition_http_timeout_seconds,
                api_key=settings.recognition_http_api_key,
            )
        return OpenAIClientAdapter(
            api_key=settings.recognition_openai_api_key,
            model=settings.recognition_openai_model_name,
            timeout_seconds=settings.recognition_openai_timeout_seconds,
            base_url=cls._resolve_base_url(provider, settings),
            temperature=settings.recognition_openai_temperature,
        )

    @classmethod
    def _resolve_base_url(cls, provider: str, settings: Settings) -> str | None:
        if provider == "openai":
            return None
        if provider == "openai_compatible":
            url = settings.recognition_openai_compatible_base_url.strip()
            if not url:
                raise ValueError(
                    "recognition_openai_compatible_base_url is required for "
                    "recognition_provider=openai_compatible"
                )
            return url
        default_base_url = cls.OPENAI_COMPATIBLE_BASE_URLS.get(provider)
        if default_base_url is not None:
            return default_base_url
        supported = [
            "example",
            "http",
            "openai",
            "openai_compatible",
            *sorted(cls.OPENAI_COMPATIBLE_BASE_URLS),
        ]
        raise ValueError(
            f"Unknown recognition provider '{provider}'. Choose from: {supported}"
        )
