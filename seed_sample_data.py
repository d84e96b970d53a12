import datetime
import random

from db import ChallengeRepository, TemplateRepository
from models import (
    ActivityKind,
    Badge,
    BadgeRarity,
    Challenge,
    ChallengeKind,
    ChallengeReward,
    DifficultyLevel,
    Exercise,
    WorkoutTemplate,
)


def default_templates() -> list[WorkoutTemplate]:
    return [
        WorkoutTemplate(
            name="Quick Cardio Blast",
            kind=ActivityKind.CARDIO,
            exercises=[
                Exercise(name="Jumping Jacks", sets=3, reps=30, rest_seconds=30),
                Exercise(name="High Knees", sets=3, reps=30, rest_seconds=30),
                Exercise(name="Burpees", sets=3, reps=10, rest_seconds=45),
            ],
            estimated_duration=900,
            difficulty=DifficultyLevel.BEGINNER,
        ),
        WorkoutTemplate(
            name="Strength Foundation",
            kind=ActivityKind.STRENGTH,
            exercises=[
                Exercise(name="Push-ups", sets=3, reps=12),
                Exercise(name="Squats", sets=3, reps=15),
                Exercise(name="Plank", sets=3, reps=1),
            ],
            estimated_duration=1200,
            difficulty=DifficultyLevel.BEGINNER,
        ),
        WorkoutTemplate(
            name="HIIT Power",
            kind=ActivityKind.HIIT,
            exercises=[
                Exercise(name="Mountain Climbers", sets=4, reps=20, rest_seconds=30),
                Exercise(name="Jump Squats", sets=4, reps=15, rest_seconds=30),
                Exercise(name="Push-up to T", sets=4, reps=10, rest_seconds=45),
            ],
            estimated_duration=1800,
            difficulty=DifficultyLevel.INTERMEDIATE,
        ),
    ]


def default_challenges(
    now: datetime.datetime, days: int = 7, rng: random.Random | None = None
) -> list[Challenge]:
    rng = rng or random.Random()
    end = now + datetime.timedelta(days=days)

    def participants(is_global: bool) -> int:
        return rng.randint(100, 5000) if is_global else 1

    return [
        Challenge(
            title="Weekly Warrior",
            description="Complete 5 workouts this week",
            kind=ChallengeKind.SESSION_COUNT,
            target_value=5,
            unit=ChallengeKind.SESSION_COUNT.unit,
            start_date=now,
            end_date=end,
            reward=ChallengeReward(
                points=500,
                badge=Badge(
                    name="Weekly Warrior",
                    description="Completed 5 workouts in a week",
                    icon="star.fill",
                    color="#F39C12",
                    rarity=BadgeRarity.COMMON,
                ),
            ),
            participant_count=participants(True),
            is_global=True,
        ),
        Challenge(
            title="Calorie Crusher",
            description="Burn 2000 calories through exercise",
            kind=ChallengeKind.CALORIES,
            target_value=2000,
            unit=ChallengeKind.CALORIES.unit,
            start_date=now,
            end_date=end,
            reward=ChallengeReward(
                points=750,
                badge=Badge(
                    name="Calorie Crusher",
                    description="Burned 2000 calories in a week",
                    icon="flame.fill",
                    color="#E74C3C",
                    rarity=BadgeRarity.RARE,
                ),
            ),
            participant_count=participants(True),
            is_global=True,
        ),
        Challenge(
            title="Consistency King",
            description="Maintain a 7-day workout streak",
            kind=ChallengeKind.STREAK,
            target_value=7,
            unit=ChallengeKind.STREAK.unit,
            start_date=now,
            end_date=end,
            reward=ChallengeReward(
                points=1000,
                badge=Badge(
                    name="Consistency King",
                    description="Maintained a 7-day workout streak",
                    icon="crown.fill",
                    color="#9B59B6",
                    rarity=BadgeRarity.EPIC,
                ),
            ),
            participant_count=participants(False),
            is_global=False,
        ),
    ]


def seed_defaults(
    templates: TemplateRepository,
    challenges: ChallengeRepository,
    now: datetime.datetime | None = None,
    days: int = 7,
    rng: random.Random | None = None,
) -> bool:
    """Fill empty template and challenge collections. Returns True if seeded."""
    seeded = False
    if not templates.load():
        templates.save(default_templates())
        seeded = True
    if not challenges.load():
        challenges.save(default_challenges(now or datetime.datetime.now(), days, rng))
        seeded = True
    return seeded


def seed(db_path: str = "pulse.db") -> None:
    if seed_defaults(TemplateRepository(db_path), ChallengeRepository(db_path)):
        print("Seed data inserted")
    else:
        print("Database already contains templates and challenges")


if __name__ == "__main__":
    seed()
