from __future__ import annotations
import datetime
import logging
import random
from typing import Callable, Iterable, List, Optional

from db import ChallengeRepository, ProgressRepository, WorkoutRepository
from models import (
    ActivityRecord,
    Challenge,
    ChallengeKind,
    ChallengeReward,
    RewardLedger,
)

logger = logging.getLogger(__name__)


def challenge_progress(
    challenge: Challenge,
    history: Iterable[ActivityRecord],
    ledger: RewardLedger,
    rng: random.Random,
) -> float:
    """Return the current progress of ``challenge`` derived from ``history``."""
    kind = challenge.kind
    if kind == ChallengeKind.STREAK:
        return float(ledger.current_streak)
    if kind in (ChallengeKind.STEPS, ChallengeKind.DISTANCE):
        # no sensor source, placeholder value
        return rng.uniform(0, max(challenge.target_value, 0.0))
    matching = [r for r in history if challenge.covers(r.timestamp)]
    if kind == ChallengeKind.SESSION_COUNT:
        return float(len(matching))
    if kind == ChallengeKind.CALORIES:
        return float(sum(r.calories_burned for r in matching))
    if kind == ChallengeKind.DURATION:
        return sum(r.duration_seconds for r in matching) / 60
    raise ValueError(f"unknown challenge kind {kind}")


def recompute_challenges(
    challenges: Iterable[Challenge],
    history: Iterable[ActivityRecord],
    ledger: RewardLedger,
    rng: random.Random,
) -> List[Challenge]:
    """Return copies of ``challenges`` with progress recomputed.

    Completed challenges are returned unchanged. Nothing is completed here;
    a challenge reaching its target only becomes eligible.
    """
    records = list(history)
    result: List[Challenge] = []
    for challenge in challenges:
        if challenge.is_completed:
            result.append(challenge.model_copy(deep=True))
            continue
        progress = challenge_progress(challenge, records, ledger, rng)
        result.append(challenge.model_copy(update={"current_progress": progress}))
    return result


class ProgressionEngine:
    """Derive challenge progress from the workout history and pay out rewards."""

    def __init__(
        self,
        challenge_repo: ChallengeRepository,
        workout_repo: WorkoutRepository,
        ledger: RewardLedger,
        progress_repo: ProgressRepository | None = None,
        rng: random.Random | None = None,
        now: Callable[[], datetime.datetime] = datetime.datetime.now,
    ) -> None:
        self.challenge_repo = challenge_repo
        self.workouts = workout_repo
        self.ledger = ledger
        self.progress = progress_repo
        self.rng = rng or random.Random()
        self._now = now
        self.challenges: List[Challenge] = challenge_repo.load()

    def refresh(self) -> List[Challenge]:
        self.challenges = recompute_challenges(
            self.challenge_repo.load(), self.workouts.load(), self.ledger, self.rng
        )
        self.challenge_repo.save(self.challenges)
        eligible = len(self.eligible_challenges)
        if eligible:
            logger.info("%d challenge(s) ready to complete", eligible)
        return self.challenges

    def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        for challenge in self.challenges:
            if challenge.id == challenge_id:
                return challenge
        return None

    def complete_challenge(self, challenge_id: str) -> bool:
        """Pay out the reward of an eligible challenge exactly once."""
        challenge = self.get_challenge(challenge_id)
        if challenge is None:
            logger.info("unknown challenge %s", challenge_id)
            return False
        if not challenge.is_eligible:
            logger.info(
                "challenge %s not completable (completed=%s, %.0f%%)",
                challenge.title,
                challenge.is_completed,
                challenge.progress_percentage,
            )
            return False
        if any(c.id == challenge_id for c in self.ledger.completed_challenges):
            # ledger already paid out; challenge store missed the completed flag
            logger.warning("challenge %s already rewarded in ledger", challenge.title)
            challenge.is_completed = True
            self.challenge_repo.save(self.challenges)
            return False
        if not self.ledger.award(challenge, now=self._now()):
            return False
        self.challenge_repo.save(self.challenges)
        if self.progress is not None:
            self.progress.save(self.ledger)
        return True

    @property
    def active_challenges(self) -> List[Challenge]:
        now = self._now()
        return [c for c in self.challenges if not c.is_completed and not c.is_expired(now)]

    @property
    def completed_challenges(self) -> List[Challenge]:
        return [c for c in self.challenges if c.is_completed]

    @property
    def global_challenges(self) -> List[Challenge]:
        return [c for c in self.challenges if c.is_global]

    @property
    def personal_challenges(self) -> List[Challenge]:
        return [c for c in self.challenges if not c.is_global]

    @property
    def eligible_challenges(self) -> List[Challenge]:
        return [c for c in self.challenges if c.is_eligible]

    def create_custom_challenge(
        self,
        title: str,
        description: str,
        kind: ChallengeKind,
        target_value: float,
        duration_seconds: float,
    ) -> Challenge:
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be positive")
        start = self._now()
        challenge = Challenge(
            title=title,
            description=description,
            kind=kind,
            target_value=target_value,
            unit=kind.unit,
            start_date=start,
            end_date=start + datetime.timedelta(seconds=duration_seconds),
            reward=ChallengeReward(points=int(target_value * 10)),
            participant_count=1,
            is_global=False,
        )
        self.challenge_repo.add(challenge)
        self.challenges.append(challenge)
        return challenge

    @staticmethod
    def format_progress(challenge: Challenge) -> str:
        current = int(challenge.current_progress)
        target = int(challenge.target_value)
        return f"{current} / {target} {challenge.unit}"

    def format_time_remaining(self, challenge: Challenge) -> str:
        days = challenge.remaining_days(self._now())
        if days == 0:
            return "Expires today"
        if days == 1:
            return "1 day left"
        return f"{days} days left"
