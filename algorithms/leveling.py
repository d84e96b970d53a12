class LevelMath:
    """Level arithmetic shared by the reward and game ledgers."""

    POINTS_PER_LEVEL: int = 1000
    TAPS_PER_LEVEL: int = 100

    @classmethod
    def level_for_points(cls, points: int) -> int:
        if points < 0:
            raise ValueError("points must be non-negative")
        return points // cls.POINTS_PER_LEVEL + 1

    @classmethod
    def level_progress(cls, points: int) -> tuple[float, int]:
        """Return percent progress into the current level and points left."""
        in_level = points % cls.POINTS_PER_LEVEL
        return in_level / cls.POINTS_PER_LEVEL * 100, cls.POINTS_PER_LEVEL - in_level

    @classmethod
    def player_level_for_taps(cls, taps: int) -> int:
        if taps < 0:
            raise ValueError("taps must be non-negative")
        return taps // cls.TAPS_PER_LEVEL + 1
