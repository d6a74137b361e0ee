"""Poll scheduling strategies for long-running provider jobs."""

from abc import ABC, abstractmethod

from .exceptions import ErrorCode, VideoRendererError


class PollStrategy(ABC):
    """Decides how long to wait before the next ``check_status`` call."""

    name: str = "base"

    # Adaptive strategies attach job_id/attempts to RATE_LIMITED errors so the
    # caller can reschedule with ``resume_video``.
    adaptive: bool = False

    @abstractmethod
    def next_delay(self, attempt: int, retry_after_ms: int | None = None) -> float:
        """
        Seconds to wait before poll number ``attempt`` (0-based).

        Args:
            attempt: Number of polls already made
            retry_after_ms: Wait suggested by the provider on the previous poll
        """
        ...


class ConstantInterval(PollStrategy):
    """Fixed delay between polls."""

    name = "constant"

    def __init__(self, interval: float = 2.0):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval

    def next_delay(self, attempt: int, retry_after_ms: int | None = None) -> float:
        return self.interval

    def __repr__(self) -> str:
        return f"ConstantInterval(interval={self.interval})"


class ExponentialBackoff(PollStrategy):
    """Delay grows by ``factor`` per poll up to ``maximum``; provider hints win."""

    name = "exponential"
    adaptive = True

    def __init__(self, initial: float = 2.0, factor: float = 1.5, maximum: float = 30.0):
        if initial <= 0 or maximum <= 0:
            raise ValueError("initial and maximum must be positive")
        if factor < 1:
            raise ValueError("factor must be at least 1")
        self.initial = initial
        self.factor = factor
        self.maximum = max(maximum, initial)

    def next_delay(self, attempt: int, retry_after_ms: int | None = None) -> float:
        if retry_after_ms is not None and retry_after_ms >= 0:
            return retry_after_ms / 1000
        return min(self.initial * self.factor ** max(attempt, 0), self.maximum)

    def __repr__(self) -> str:
        return (
            f"ExponentialBackoff(initial={self.initial}, factor={self.factor}, "
            f"maximum={self.maximum})"
        )


STRATEGY_ALIASES = {
    "constant": "constant",
    "fixed": "constant",
    "exponential": "exponential",
    "backoff": "exponential",
    "adaptive": "exponential",
}


def strategy_from_name(name: str, interval: float, maximum: float) -> PollStrategy:
    """Build a strategy from its configured name."""
    resolved = STRATEGY_ALIASES.get((name or "").strip().lower())
    if resolved == "constant":
        return ConstantInterval(interval)
    if resolved == "exponential":
        return ExponentialBackoff(initial=interval, maximum=maximum)
    raise VideoRendererError(
        f"Unknown poll strategy: {name!r}. Use one of: {', '.join(sorted(STRATEGY_ALIASES))}",
        ErrorCode.CONFIGURATION_ERROR,
    )
