from __future__ import annotations
import datetime
import logging
from typing import Callable, Optional

from algorithms import CalorieEstimator
from clock import Clock
from db import ProgressRepository, WorkoutRepository
from models import (
    ActivityKind,
    ActivityRecord,
    Exercise,
    RewardLedger,
    WorkoutSession,
    WorkoutTemplate,
)

logger = logging.getLogger(__name__)


class WorkoutSessionController:
    """Track the elapsed time and exercises of one active workout.

    A session is started from ``idle``, ticks once per second while running
    and is either finished into an :class:`ActivityRecord` or cancelled.
    Calls that do not apply to the current state are ignored.
    """

    TICK_SECONDS = 1.0

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        ledger: RewardLedger,
        progress_repo: ProgressRepository | None = None,
        clock: Clock | None = None,
        now: Callable[[], datetime.datetime] = datetime.datetime.now,
        default_name: str = "Custom Workout",
    ) -> None:
        self.workouts = workout_repo
        self.ledger = ledger
        self.progress = progress_repo
        self.clock = clock or Clock(name="workout")
        self._now = now
        self.default_name = default_name
        self.session: Optional[WorkoutSession] = None

    @property
    def state(self) -> str:
        if self.session is None:
            return "idle"
        return "paused" if self.session.is_paused else "active"

    @property
    def elapsed_seconds(self) -> int:
        return self.session.elapsed_seconds if self.session else 0

    def start(
        self,
        template: WorkoutTemplate | None = None,
        name: str | None = None,
        kind: ActivityKind | None = None,
    ) -> Optional[WorkoutSession]:
        if self.session is not None:
            logger.info("session already running, start ignored")
            return None
        if template is not None:
            session = WorkoutSession(
                name=name or template.name,
                kind=kind or template.kind,
                exercises=[e.model_copy() for e in template.exercises],
                started_at=self._now(),
            )
        else:
            session = WorkoutSession(
                name=name or self.default_name,
                kind=kind or ActivityKind.STRENGTH,
                started_at=self._now(),
            )
        self.session = session
        self.clock.start(self.TICK_SECONDS, self._tick)
        logger.info("started %s session %r", session.kind.value, session.name)
        return session

    def _tick(self) -> None:
        if self.session is None:
            return
        self.session.elapsed_seconds += 1

    def pause(self) -> bool:
        if self.session is None or self.session.is_paused:
            return False
        self.clock.stop()
        self.session.is_paused = True
        return True

    def resume(self) -> bool:
        if self.session is None or not self.session.is_paused:
            return False
        self.session.is_paused = False
        self.clock.start(self.TICK_SECONDS, self._tick)
        return True

    def finish(self, calories_override: int = 0) -> Optional[ActivityRecord]:
        """Stop the session and append it to the workout history."""
        session = self.session
        if session is None:
            return None
        self.clock.stop()
        elapsed = session.elapsed_seconds
        if calories_override > 0:
            calories = calories_override
        else:
            calories = CalorieEstimator.estimate(session.kind, elapsed)
        record = ActivityRecord(
            name=session.name,
            kind=session.kind,
            duration_seconds=float(elapsed),
            calories_burned=calories,
            timestamp=session.started_at,
            exercises=list(session.exercises),
        )
        self.workouts.append(record)
        self.ledger.record_session(record, today=self._now().date())
        if self.progress is not None:
            self.progress.save(self.ledger)
        self.session = None
        logger.info(
            "finished %r after %ds, %d kcal", record.name, elapsed, calories
        )
        return record

    def cancel(self) -> bool:
        if self.session is None:
            return False
        self.clock.stop()
        logger.info("cancelled session %r", self.session.name)
        self.session = None
        return True

    def add_exercise(self, exercise: Exercise) -> bool:
        if self.session is None:
            return False
        self.session.exercises.append(exercise)
        return True

    def update_exercise(self, exercise: Exercise) -> bool:
        if self.session is None:
            return False
        for idx, existing in enumerate(self.session.exercises):
            if existing.id == exercise.id:
                self.session.exercises[idx] = exercise
                return True
        return False

    def remove_exercise(self, exercise_id: str) -> bool:
        if self.session is None:
            return False
        before = len(self.session.exercises)
        self.session.exercises = [
            e for e in self.session.exercises if e.id != exercise_id
        ]
        return len(self.session.exercises) != before


def format_elapsed(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS`` or ``MM:SS`` below one hour."""
    total = int(seconds)
    hours = total // 3600
    minutes = total % 3600 // 60
    secs = total % 60
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
