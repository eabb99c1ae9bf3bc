from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitPolicy:
    """Allow ``requests`` calls per key within ``window_seconds``."""

    requests: int
    window_seconds: float


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate limit check."""

    allowed: bool
    remaining: int
    retry_after_seconds: float = 0.0
