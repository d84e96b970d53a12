from __future__ import annotations
import datetime
import logging
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from algorithms import LevelMath

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


class ActivityKind(str, Enum):
    CARDIO = "cardio"
    STRENGTH = "strength"
    FLEXIBILITY = "flexibility"
    SPORTS = "sports"
    YOGA = "yoga"
    RUNNING = "running"
    CYCLING = "cycling"
    SWIMMING = "swimming"
    HIIT = "hiit"
    CROSSFIT = "crossfit"

    @property
    def label(self) -> str:
        return _ACTIVITY_LABELS[self]


_ACTIVITY_LABELS = {
    ActivityKind.CARDIO: "Cardio",
    ActivityKind.STRENGTH: "Strength Training",
    ActivityKind.FLEXIBILITY: "Flexibility",
    ActivityKind.SPORTS: "Sports",
    ActivityKind.YOGA: "Yoga",
    ActivityKind.RUNNING: "Running",
    ActivityKind.CYCLING: "Cycling",
    ActivityKind.SWIMMING: "Swimming",
    ActivityKind.HIIT: "HIIT",
    ActivityKind.CROSSFIT: "CrossFit",
}


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class Exercise(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    sets: int = 1
    reps: int = 1
    weight: float = 0.0
    rest_seconds: float = 60.0
    notes: str = ""


class WorkoutTemplate(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    kind: ActivityKind
    exercises: list[Exercise] = Field(default_factory=list)
    estimated_duration: float = 0.0
    difficulty: DifficultyLevel = DifficultyLevel.BEGINNER


class WorkoutSession(BaseModel):
    """In-progress exercise session owned by the session controller."""

    name: str
    kind: ActivityKind
    exercises: list[Exercise] = Field(default_factory=list)
    started_at: datetime.datetime
    elapsed_seconds: int = 0
    is_active: bool = True
    is_paused: bool = False


class ActivityRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    kind: ActivityKind
    duration_seconds: float = 0.0
    calories_burned: int = 0
    timestamp: datetime.datetime = Field(default_factory=datetime.datetime.now)
    exercises: list[Exercise] = Field(default_factory=list)
    notes: str = ""


class BadgeRarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class Badge(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    description: str = ""
    icon: str = ""
    color: str = "#95A5A6"
    rarity: BadgeRarity = BadgeRarity.COMMON
    date_earned: Optional[datetime.datetime] = None


class ChallengeKind(str, Enum):
    SESSION_COUNT = "session_count"
    CALORIES = "calories"
    DURATION = "duration"
    STEPS = "steps"
    DISTANCE = "distance"
    STREAK = "streak"

    @property
    def unit(self) -> str:
        return _CHALLENGE_UNITS[self]


_CHALLENGE_UNITS = {
    ChallengeKind.SESSION_COUNT: "workouts",
    ChallengeKind.CALORIES: "calories",
    ChallengeKind.DURATION: "minutes",
    ChallengeKind.STEPS: "steps",
    ChallengeKind.DISTANCE: "km",
    ChallengeKind.STREAK: "days",
}


class ChallengeReward(BaseModel):
    points: int
    badge: Optional[Badge] = None
    title: Optional[str] = None


class Challenge(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    description: str = ""
    kind: ChallengeKind
    target_value: float
    current_progress: float = 0.0
    unit: str = ""
    start_date: datetime.datetime
    end_date: datetime.datetime
    reward: ChallengeReward
    participant_count: int = 1
    is_completed: bool = False
    is_global: bool = False

    @property
    def progress_percentage(self) -> float:
        """Progress towards the target, clamped to [0, 100]."""
        if self.target_value <= 0:
            return 100.0
        pct = self.current_progress / self.target_value * 100
        return max(0.0, min(pct, 100.0))

    @property
    def is_eligible(self) -> bool:
        return not self.is_completed and self.progress_percentage >= 100

    def is_expired(self, now: datetime.datetime | None = None) -> bool:
        return (now or datetime.datetime.now()) > self.end_date

    def remaining_days(self, now: datetime.datetime | None = None) -> int:
        delta = self.end_date - (now or datetime.datetime.now())
        return max(delta.days, 0)

    def covers(self, timestamp: datetime.datetime) -> bool:
        return self.start_date <= timestamp <= self.end_date


class RewardLedger(BaseModel):
    """Cumulative points, level, streak and badge state of the user.

    Only :meth:`award` and :meth:`record_session` mutate it.
    """

    total_points: int = 0
    level: int = 1
    badges: list[Badge] = Field(default_factory=list)
    completed_challenges: list[Challenge] = Field(default_factory=list)
    current_streak: int = 0
    longest_streak: int = 0
    total_sessions: int = 0
    total_calories_burned: int = 0
    total_exercise_seconds: float = 0.0

    def _update_level(self) -> None:
        self.level = max(self.level, LevelMath.level_for_points(self.total_points))

    def award(
        self, challenge: Challenge, now: datetime.datetime | None = None
    ) -> bool:
        """Transfer the reward of ``challenge`` and mark it completed.

        Returns ``False`` without touching anything when the challenge is
        already completed.
        """
        if challenge.is_completed:
            logger.info("challenge %s already rewarded", challenge.id)
            return False
        challenge.is_completed = True
        self.total_points += challenge.reward.points
        self._update_level()
        if challenge.reward.badge is not None:
            earned = challenge.reward.badge.model_copy(
                update={"date_earned": now or datetime.datetime.now()}
            )
            self.badges.append(earned)
        self.completed_challenges.append(challenge.model_copy(deep=True))
        logger.info(
            "awarded %d points for %s (total %d, level %d)",
            challenge.reward.points,
            challenge.title,
            self.total_points,
            self.level,
        )
        return True

    def record_session(
        self, record: ActivityRecord, today: datetime.date | None = None
    ) -> None:
        self.total_sessions += 1
        self.total_calories_burned += record.calories_burned
        self.total_exercise_seconds += record.duration_seconds
        self._update_level()
        if record.timestamp.date() == (today or datetime.date.today()):
            # only starts a streak; continuation and breaks are not tracked
            if self.current_streak == 0:
                self.current_streak = 1
        self.longest_streak = max(self.longest_streak, self.current_streak)


class GameLedger(BaseModel):
    best_score: int = 0
    games_played: int = 0
    total_taps: int = 0
    player_level: int = 1

    def record_game(self, score: int, taps: int) -> None:
        self.games_played += 1
        self.total_taps += taps
        self.best_score = max(self.best_score, score)
        self.player_level = LevelMath.player_level_for_taps(self.total_taps)


class GameState(str, Enum):
    MENU = "menu"
    PLAYING = "playing"
    PAUSED = "paused"
    GAME_OVER = "game_over"


class SpawnedIcon(BaseModel):
    id: str = Field(default_factory=_new_id)
    position: tuple[float, float]
    visual_kind: str
    color: str
    size: float
    spawned_at: float
    lifespan_seconds: float

    def is_expired(self, now: float) -> bool:
        return now - self.spawned_at > self.lifespan_seconds
