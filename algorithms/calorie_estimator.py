import math


class CalorieEstimator:
    """Heuristic calorie burn estimate from activity kind and duration."""

    DEFAULT_RATE: float = 7.0
    RATES_PER_MINUTE: dict[str, float] = {
        "cardio": 10.0,
        "running": 10.0,
        "cycling": 10.0,
        "hiit": 12.0,
        "crossfit": 12.0,
        "strength": 6.0,
        "yoga": 3.0,
        "flexibility": 3.0,
        "swimming": 11.0,
        "sports": 8.0,
    }

    @classmethod
    def rate_for(cls, kind: str | None) -> float:
        """Return the calories burned per minute for ``kind``."""
        if kind is None:
            return cls.DEFAULT_RATE
        key = getattr(kind, "value", kind)
        return cls.RATES_PER_MINUTE.get(key, cls.DEFAULT_RATE)

    @classmethod
    def estimate(cls, kind: str | None, elapsed_seconds: float) -> int:
        """Return ``floor(minutes * rate)`` for a session of ``elapsed_seconds``."""
        if elapsed_seconds < 0:
            raise ValueError("elapsed_seconds must be non-negative")
        minutes = elapsed_seconds / 60
        return int(math.floor(minutes * cls.rate_for(kind)))
