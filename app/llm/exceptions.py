class LlmError(Exception):
    """Raised when LLM receipt extraction fails."""


class LlmNetworkError(LlmError):
    """Raised when the AI provider call fails due to network/infrastructure issues."""


class LlmRateLimitedError(LlmError):
    """Raised when the AI provider rejects the call with a rate limit."""


class LlmParsingError(LlmError):
    """Raised when the provider response is not a usable JSON object."""
