"""Example LLM client adapter.

Use this module as a reference when implementing new provider adapters.
Implement BaseLlmClient and register the provider in LlmExtractorFactory.
"""

import json
from typing import ClassVar

from app.llm.client_base import BaseLlmClient


class ExampleClientAdapter(BaseLlmClient):
    """Example adapter that returns a fixed receipt JSON.

    No network calls. Useful for local development and tests.
    """

    DEFAULT_RESPONSE: ClassVar[dict[str, object]] = {
        "merchant": "Example Store",
        "date": None,
        "subtotal": None,
        "tax": None,
        "total": None,
        "items": [],
        "categoryCode": "OTHER",
        "confidence": 0.5,
    }

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
        _ = model, temperature, system_prompt, user_prompt, image_base64, mime_type, max_tokens
        return json.dumps(self.DEFAULT_RESPONSE)
