from abc import ABC, abstractmethod

from app.rate_limit.models import RateLimitPolicy, RateLimitResult


class BaseRateLimiter(ABC):
    """Contract for outbound call throttling."""

    @abstractmethod
    def check(self, key: str, policy: RateLimitPolicy) -> RateLimitResult:
        """Record one call for key and report whether it is within policy.

        Args:
            key: Throttling bucket, e.g. "llm:{user_id}".
            policy: Allowed calls per time window.

        Returns:
            RateLimitResult; when not allowed, retry_after_seconds tells the
            caller how long until the window resets.
        """
