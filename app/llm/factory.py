from typing import ClassVar

from app.config.settings import Settings
from app.llm.example_client_adapter import ExampleClientAdapter
from app.llm.openai_client_adapter import OpenAIClientAdapter
from app.llm.receipt_llm import LlmReceiptExtractor
from app.logging.logger import Log


class LlmExtractorFactory:
    """Creates the configured LLM receipt extractor, or None when disabled."""

    OPENAI_COMPATIBLE_BASE_URLS: ClassVar[dict[str, str]] = {
        "openrouter": "https://openrouter.ai/api/v1",
        "groq": "https://api.groq.com/openai/v1",
        "together": "https://api.together.xyz/v1",
        "deepseek": "https://api.deepseek.com/v1",
        "ollama": "http://localhost:11434/v1",
    }
    KEYLESS_PROVIDERS: ClassVar[frozenset[str]] = frozenset({"ollama", "openai_compatible"})

    @classmethod
    def create(cls, settings: Settings) -> LlmReceiptExtractor | None:
        """Create a configured extractor from application settings."""
        provider = settings.llm_provider.lower()
        if provider in ("", "none"):
            return None
        if provider == "example":
            return LlmReceiptExtractor(client=ExampleClientAdapter(), model="example")

        base_url = cls._resolve_base_url(provider, settings)
        if not settings.llm_api_key and provider not in cls.KEYLESS_PROVIDERS:
            Log.warning(f"LLM provider '{provider}' has no API key; LLM fallback disabled")
            return None

        client = OpenAIClientAdapter(
            api_key=settings.llm_api_key or "unused",
            timeout_seconds=settings.llm_timeout_seconds,
            base_url=base_url,
        )
        return LlmReceiptExtractor(
            client=client,
            model=settings.llm_model_name,
            max_tokens=settings.llm_max_tokens,
        )

    @classmethod
    def _resolve_base_url(cls, provider: str, settings: Settings) -> str | None:
        if provider == "openai":
            return None
        if provider == "openai_compatible":
            url = (settings.llm_base_url or "").strip()
            if not url:
                raise ValueError("llm_base_url is required for llm_provider=openai_compatible")
            return url
        default_base_url = cls.OPENAI_COMPATIBLE_BASE_URLS.get(provider)
        if default_base_url is not None:
            return settings.llm_base_url or default_base_url
        supported = [
            "none",
            "example",
            "openai",
            "openai_compatible",
            *sorted(cls.OPENAI_COMPATIBLE_BASE_URLS),
        ]
        raise ValueError(f"Unknown LLM provider '{provider}'. Choose from: {supported}")
