import os
import sys
import datetime
import random
import tempfile
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import ChallengeRepository, ProgressRepository, WorkoutRepository
from models import (
    ActivityKind,
    ActivityRecord,
    Badge,
    Challenge,
    ChallengeKind,
    ChallengeReward,
    RewardLedger,
)
from progression_service import (
    ProgressionEngine,
    challenge_progress,
    recompute_challenges,
)

NOW = datetime.datetime(2024, 5, 6, 12, 0)


def make_challenge(kind=ChallengeKind.SESSION_COUNT, target=3, **kw) -> Challenge:
    data = dict(
        title=f"{kind.value} challenge",
        kind=kind,
        target_value=target,
        unit=kind.unit,
        start_date=NOW - datetime.timedelta(days=1),
        end_date=NOW + datetime.timedelta(days=6),
        reward=ChallengeReward(points=500, badge=Badge(name="Winner")),
    )
    data.update(kw)
    return Challenge(**data)


def make_record(hours_ago: float, calories: int = 100, minutes: float = 30) -> ActivityRecord:
    return ActivityRecord(
        name="Run",
        kind=ActivityKind.RUNNING,
        duration_seconds=minutes * 60,
        calories_burned=calories,
        timestamp=NOW - datetime.timedelta(hours=hours_ago),
    )


class ChallengeProgressTest(unittest.TestCase):
    def setUp(self) -> None:
        self.ledger = RewardLedger()
        self.rng = random.Random(7)
        self.history = [make_record(1), make_record(5), make_record(100)]

    def test_session_count_only_counts_window(self) -> None:
        progress = challenge_progress(make_challenge(), self.history, self.ledger, self.rng)
        self.assertEqual(progress, 2.0)

    def test_calories_and_duration(self) -> None:
        self.assertEqual(
            challenge_progress(
                make_challenge(ChallengeKind.CALORIES, 1000), self.history, self.ledger, self.rng
            ),
            200.0,
        )
        self.assertEqual(
            challenge_progress(
                make_challenge(ChallengeKind.DURATION, 90), self.history, self.ledger, self.rng
            ),
            60.0,
        )

    def test_streak_uses_ledger(self) -> None:
        self.ledger.current_streak = 4
        progress = challenge_progress(
            make_challenge(ChallengeKind.STREAK, 7), [], self.ledger, self.rng
        )
        self.assertEqual(progress, 4.0)

    def test_steps_and_distance_stay_in_bounds(self) -> None:
        for kind, target in ((ChallengeKind.STEPS, 10000), (ChallengeKind.DISTANCE, 5)):
            for _ in range(50):
                value = challenge_progress(
                    make_challenge(kind, target), [], self.ledger, self.rng
                )
                self.assertGreaterEqual(value, 0)
                self.assertLessEqual(value, target)

    def test_recompute_returns_copies_and_skips_completed(self) -> None:
        open_one = make_challenge()
        done = make_challenge(is_completed=True, current_progress=3)
        result = recompute_challenges([open_one, done], self.history, self.ledger, self.rng)
        self.assertEqual(result[0].current_progress, 2.0)
        self.assertEqual(open_one.current_progress, 0.0)
        self.assertEqual(result[1].current_progress, 3)
        self.assertTrue(result[1].is_completed)

    def test_recompute_is_idempotent(self) -> None:
        challenges = [make_challenge(), make_challenge(ChallengeKind.CALORIES, 150)]
        once = recompute_challenges(challenges, self.history, self.ledger, self.rng)
        twice = recompute_challenges(once, self.history, self.ledger, self.rng)
        self.assertEqual(
            [c.current_progress for c in once], [c.current_progress for c in twice]
        )


class ChallengeModelTest(unittest.TestCase):
    def test_percentage_is_clamped(self) -> None:
        self.assertEqual(make_challenge(target=100, current_progress=150).progress_percentage, 100.0)
        self.assertEqual(make_challenge(target=100, current_progress=-5).progress_percentage, 0.0)
        self.assertEqual(make_challenge(target=4, current_progress=1).progress_percentage, 25.0)

    def test_zero_target_counts_as_done(self) -> None:
        challenge = make_challenge(target=0)
        self.assertEqual(challenge.progress_percentage, 100.0)
        self.assertTrue(challenge.is_eligible)

    def test_expiry_and_remaining_days(self) -> None:
        challenge = make_challenge()
        self.assertFalse(challenge.is_expired(NOW))
        self.assertTrue(challenge.is_expired(NOW + datetime.timedelta(days=7)))
        self.assertEqual(challenge.remaining_days(NOW), 6)
        self.assertEqual(challenge.remaining_days(NOW + datetime.timedelta(days=30)), 0)


class ProgressionEngineTest(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmp.name, "progress.db")
        self.challenges = ChallengeRepository(db_path)
        self.workouts = WorkoutRepository(db_path)
        self.progress = ProgressRepository(db_path)
        self.ledger = RewardLedger()
        self.target = make_challenge(target=2)
        self.far = make_challenge(target=10)
        self.challenges.save([self.target, self.far])
        self.engine = ProgressionEngine(
            self.challenges,
            self.workouts,
            self.ledger,
            self.progress,
            rng=random.Random(1),
            now=lambda: NOW,
        )

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_complete_after_enough_sessions(self) -> None:
        self.workouts.append(make_record(2))
        self.engine.refresh()
        self.assertFalse(self.engine.complete_challenge(self.target.id))
        self.assertEqual(self.ledger.total_points, 0)

        self.workouts.append(make_record(1))
        self.engine.refresh()
        self.assertEqual(
            [c.id for c in self.engine.eligible_challenges], [self.target.id]
        )
        self.assertTrue(self.engine.complete_challenge(self.target.id))
        self.assertEqual(self.ledger.total_points, 500)
        self.assertEqual(len(self.ledger.badges), 1)
        self.assertEqual(self.ledger.badges[0].date_earned, NOW)
        self.assertEqual(self.progress.load().total_points, 500)
        stored = {c.id: c for c in self.challenges.load()}
        self.assertTrue(stored[self.target.id].is_completed)

        self.assertFalse(self.engine.complete_challenge(self.target.id))
        self.assertEqual(self.ledger.total_points, 500)
        self.assertEqual(len(self.ledger.completed_challenges), 1)

    def test_completed_challenge_keeps_progress_on_refresh(self) -> None:
        self.workouts.append(make_record(1))
        self.workouts.append(make_record(2))
        self.engine.refresh()
        self.engine.complete_challenge(self.target.id)
        self.workouts.append(make_record(3))
        self.engine.refresh()
        done = self.engine.completed_challenges[0]
        self.assertEqual(done.current_progress, 2.0)
        self.assertEqual(self.engine.active_challenges[0].current_progress, 3.0)

    def test_five_sessions_reach_weekly_target(self) -> None:
        weekly = make_challenge(target=5)
        self.challenges.save([weekly])
        for hours in range(5):
            self.workouts.append(make_record(hours))
        first = self.engine.refresh()
        self.assertEqual(first[0].progress_percentage, 100.0)
        self.assertFalse(first[0].is_completed)
        second = self.engine.refresh()
        self.assertEqual(second[0].current_progress, first[0].current_progress)

        self.assertTrue(self.engine.complete_challenge(weekly.id))
        self.assertTrue(self.engine.challenges[0].is_completed)
        self.assertEqual(self.ledger.total_points, weekly.reward.points)
        self.assertFalse(self.engine.complete_challenge(weekly.id))
        self.assertEqual(self.ledger.total_points, weekly.reward.points)

    def test_ledger_history_blocks_second_payout(self) -> None:
        self.workouts.append(make_record(1))
        self.workouts.append(make_record(2))
        self.engine.refresh()
        self.assertTrue(self.engine.complete_challenge(self.target.id))

        # completed flag lost, ledger still holds the payout
        self.engine.get_challenge(self.target.id).is_completed = False
        self.assertFalse(self.engine.complete_challenge(self.target.id))
        self.assertEqual(self.ledger.total_points, 500)
        self.assertEqual(len(self.ledger.badges), 1)
        self.assertTrue(self.engine.get_challenge(self.target.id).is_completed)
        stored = {c.id: c for c in self.challenges.load()}
        self.assertTrue(stored[self.target.id].is_completed)

    def test_get_challenge(self) -> None:
        self.assertEqual(self.engine.get_challenge(self.far.id).id, self.far.id)
        self.assertIsNone(self.engine.get_challenge("missing"))

    def test_unknown_challenge(self) -> None:
        self.assertFalse(self.engine.complete_challenge("missing"))

    def test_filters(self) -> None:
        self.challenges.add(make_challenge(is_global=True))
        self.challenges.add(
            make_challenge(end_date=NOW - datetime.timedelta(hours=1))
        )
        self.engine.refresh()
        self.assertEqual(len(self.engine.global_challenges), 1)
        self.assertEqual(len(self.engine.personal_challenges), 3)
        self.assertEqual(len(self.engine.active_challenges), 3)

    def test_create_custom_challenge(self) -> None:
        challenge = self.engine.create_custom_challenge(
            "Run far", "Run 12.5 km", ChallengeKind.DISTANCE, 12.5, 3 * 86400
        )
        self.assertEqual(challenge.reward.points, 125)
        self.assertEqual(challenge.unit, "km")
        self.assertEqual(challenge.end_date, NOW + datetime.timedelta(days=3))
        self.assertFalse(challenge.is_global)
        self.assertIn(challenge.id, [c.id for c in self.challenges.load()])
        with self.assertRaises(ValueError):
            self.engine.create_custom_challenge(
                "Bad", "", ChallengeKind.STEPS, 100, 0
            )

    def test_formatting(self) -> None:
        challenge = make_challenge(target=5, current_progress=2.7)
        self.assertEqual(self.engine.format_progress(challenge), "2 / 5 workouts")
        self.assertEqual(self.engine.format_time_remaining(challenge), "6 days left")
        soon = make_challenge(end_date=NOW + datetime.timedelta(hours=30))
        self.assertEqual(self.engine.format_time_remaining(soon), "1 day left")
        today = make_challenge(end_date=NOW + datetime.timedelta(hours=3))
        self.assertEqual(self.engine.format_time_remaining(today), "Expires today")


if __name__ == "__main__":
    unittest.main()
