from abc import ABC, abstractmethod


class BaseLlmClient(ABC):
    """Contract for provider-specific vision chat clients."""

    @abstractmethod
    def create_chat_completion(
        self,
        *,
        model: str,
        temperature: float,
        system_prompt: str,
        user_prompt: str,
        image_base64: str,
        mime_type: str,
        max_tokens: int,
    ) -> str:
        """Return provider response as plain text."""
