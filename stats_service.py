from __future__ import annotations
import datetime
from collections import Counter
from typing import Callable, Iterable, List

from db import WorkoutRepository
from gamification_service import GamificationService
from models import ActivityKind, ActivityRecord, Challenge


class StatisticsService:
    """Compute workout and progression statistics."""

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        gamification: GamificationService | None = None,
        now: Callable[[], datetime.datetime] = datetime.datetime.now,
    ) -> None:
        self.workouts = workout_repo
        self.gamification = gamification
        self._now = now

    def workout_stats(self) -> dict:
        records = self.workouts.load()
        total = len(records)
        duration = sum(r.duration_seconds for r in records)
        calories = sum(r.calories_burned for r in records)
        counts = Counter(r.kind for r in records)
        favorite = counts.most_common(1)[0][0] if counts else ActivityKind.STRENGTH
        return {
            "total_workouts": total,
            "total_duration": duration,
            "total_calories": calories,
            "average_duration": duration / total if total else 0.0,
            "favorite_kind": favorite.value,
        }

    def _since(self, cutoff: datetime.datetime) -> List[ActivityRecord]:
        return [r for r in self.workouts.load() if r.timestamp >= cutoff]

    def weekly_workouts(self) -> List[ActivityRecord]:
        return self._since(self._now() - datetime.timedelta(days=7))

    def monthly_workouts(self) -> List[ActivityRecord]:
        now = self._now()
        year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
        day = min(now.day, _days_in_month(year, month))
        return self._since(now.replace(year=year, month=month, day=day))

    def progress_stats(self, challenges: Iterable[Challenge]) -> dict:
        items = list(challenges)
        now = self._now()
        completed = sum(1 for c in items if c.is_completed)
        active = sum(1 for c in items if not c.is_completed and not c.is_expired(now))
        total = len(items)
        stats = {
            "total_challenges": total,
            "completed_challenges": completed,
            "active_challenges": active,
            "completion_rate": completed / total * 100 if total else 0.0,
        }
        if self.gamification is not None:
            ledger = self.gamification.ledger
            stats.update(
                {
                    "total_points": ledger.total_points,
                    "level": ledger.level,
                    "total_badges": len(ledger.badges),
                    "current_streak": ledger.current_streak,
                    "longest_streak": ledger.longest_streak,
                }
            )
        return stats


def _days_in_month(year: int, month: int) -> int:
    if month == 12:
        nxt = datetime.date(year + 1, 1, 1)
    else:
        nxt = datetime.date(year, month + 1, 1)
    return (nxt - datetime.date(year, month, 1)).days
