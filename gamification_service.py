import datetime

from algorithms import LevelMath
from db import ProgressRepository
from models import Badge, BadgeRarity, RewardLedger


class GamificationService:
    """Own the persisted reward ledger and answer questions about it."""

    def __init__(
        self,
        repo: ProgressRepository,
        ledger: RewardLedger | None = None,
    ) -> None:
        self.repo = repo
        self.ledger = ledger if ledger is not None else repo.load()

    def save(self) -> None:
        self.repo.save(self.ledger)

    def total_points(self) -> int:
        return self.ledger.total_points

    def level_progress(self) -> dict:
        """Return the level, percent into it and points to the next one."""
        progress, to_next = LevelMath.level_progress(self.ledger.total_points)
        return {
            "level": self.ledger.level,
            "progress": progress,
            "points_to_next": to_next,
        }

    def recent_badges(
        self, days: int = 7, now: datetime.datetime | None = None
    ) -> list[Badge]:
        cutoff = (now or datetime.datetime.now()) - datetime.timedelta(days=days)
        return [
            b
            for b in self.ledger.badges
            if b.date_earned is not None and b.date_earned >= cutoff
        ]

    def badges_by_rarity(self) -> dict[BadgeRarity, list[Badge]]:
        groups: dict[BadgeRarity, list[Badge]] = {}
        for badge in self.ledger.badges:
            groups.setdefault(badge.rarity, []).append(badge)
        return groups

    def streak(self) -> dict[str, int]:
        """Return current and record workout streak lengths."""
        return {
            "current": self.ledger.current_streak,
            "record": self.ledger.longest_streak,
        }
