import os
import sys
import random
import tempfile
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from clock import ManualTimeline
from db import GameStatsRepository
from models import GameState
from tap_game_service import TapGameController


class LowRandom(random.Random):
    """Always picks the lower bound and the first choice."""

    def uniform(self, a, b):
        return a

    def choice(self, seq):
        return seq[0]


class TapGameTest(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.stats = GameStatsRepository(os.path.join(self.tmp.name, "game.db"))
        self.timeline = ManualTimeline()
        self.game = TapGameController(
            self.stats,
            game_clock=self.timeline.clock("game"),
            spawn_clock=self.timeline.clock("spawn"),
            time_source=self.timeline.time,
            rng=LowRandom(),
        )

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_start_resets_round(self) -> None:
        self.assertEqual(self.game.state, GameState.MENU)
        self.assertTrue(self.game.start())
        self.assertEqual(self.game.state, GameState.PLAYING)
        self.assertEqual(self.game.lives, 3)
        self.assertEqual(self.game.time_remaining, 30.0)
        self.assertFalse(self.game.start())

    def test_countdown_and_first_spawn(self) -> None:
        self.game.start()
        self.timeline.advance(1.0)
        self.assertEqual(self.game.time_remaining, 29.0)
        self.assertEqual(self.game.icons, [])
        self.timeline.advance(0.5)
        self.assertEqual(len(self.game.icons), 1)
        icon = self.game.icons[0]
        self.assertEqual(icon.spawned_at, 1.5)
        self.assertEqual(icon.lifespan_seconds, 1.5)
        self.assertEqual(icon.position, (0.1, 0.1))
        self.assertEqual(icon.visual_kind, "dumbbell.fill")

    def test_icon_cap(self) -> None:
        self.assertIsNone(self.game.spawn_icon())
        self.game.start()
        spawned = [self.game.spawn_icon() for _ in range(7)]
        self.assertEqual(len(self.game.icons), 5)
        self.assertIsNone(spawned[5])
        self.assertIsNone(spawned[6])

    def test_tap_scores_and_removes_icon(self) -> None:
        self.game.start()
        self.timeline.advance(1.5)
        icon_id = self.game.icons[0].id
        self.assertTrue(self.game.tap_icon(icon_id))
        self.assertEqual(self.game.score, 10)
        self.assertEqual(self.game.tap_count, 1)
        self.assertEqual(self.game.icons, [])
        self.assertFalse(self.game.tap_icon(icon_id))
        self.assertFalse(self.game.tap_icon("nope"))
        self.assertEqual(self.game.score, 10)

    def test_missed_icon_costs_one_life(self) -> None:
        self.game.start()
        self.timeline.advance(3.05)
        self.assertEqual(self.game.lives, 3)
        self.assertEqual(len(self.game.icons), 2)
        self.timeline.advance(0.05)
        self.assertEqual(self.game.lives, 2)
        self.assertEqual(len(self.game.icons), 1)

    def test_three_misses_end_game_on_exact_tick(self) -> None:
        self.game.start()
        self.timeline.advance(6.05)
        self.assertEqual(self.game.state, GameState.PLAYING)
        self.assertEqual(self.game.lives, 1)
        self.timeline.advance(0.05)
        self.assertEqual(self.game.state, GameState.GAME_OVER)
        self.assertEqual(self.game.lives, 0)
        self.assertEqual(self.timeline.pending(), 0)
        self.assertEqual(self.game.ledger.games_played, 1)
        self.assertEqual(self.stats.load().games_played, 1)

    def test_time_runs_out(self) -> None:
        self.game.LIFESPAN_RANGE = (100.0, 100.0)
        self.game.start()
        self.timeline.advance(29.95)
        self.assertEqual(self.game.state, GameState.PLAYING)
        self.assertEqual(self.game.time_remaining, 0.1)
        self.assertLessEqual(len(self.game.icons), 5)
        self.timeline.advance(0.05)
        self.assertEqual(self.game.state, GameState.GAME_OVER)
        self.assertEqual(self.game.time_remaining, 0.0)
        self.assertEqual(self.game.lives, 3)

    def test_difficulty_ramps(self) -> None:
        self.game.LIFESPAN_RANGE = (100.0, 100.0)
        self.game.start()
        self.timeline.advance(9.0)
        self.assertEqual(self.game.game_speed, 1.0)
        self.assertEqual(self.game.spawn_interval, 1.5)
        self.timeline.advance(0.1)
        self.assertEqual(self.game.game_speed, 1.1)
        self.assertEqual(self.game.spawn_interval, 1.4)
        self.timeline.advance(5.0)
        self.assertEqual(self.game.game_speed, 2.0)
        self.assertEqual(self.game.spawn_interval, 0.5)

    def test_pause_freezes_round(self) -> None:
        self.game.start()
        self.timeline.advance(1.0)
        self.assertTrue(self.game.pause())
        self.assertFalse(self.game.pause())
        self.timeline.advance(5.0)
        self.assertEqual(self.game.time_remaining, 29.0)
        self.assertEqual(self.game.icons, [])
        self.assertFalse(self.game.tap_icon("any"))
        self.assertTrue(self.game.resume())
        self.assertFalse(self.game.resume())
        self.timeline.advance(0.1)
        self.assertEqual(self.game.time_remaining, 28.9)

    def test_icons_do_not_age_while_paused(self) -> None:
        self.game.start()
        self.timeline.advance(1.5)
        self.assertEqual(len(self.game.icons), 1)
        self.game.pause()
        self.timeline.advance(60)
        self.game.resume()
        self.timeline.advance(0.1)
        self.assertEqual(self.game.lives, 3)
        self.assertEqual(self.game.icons[0].spawned_at, 61.5)
        # remaining lifespan still runs out after resume
        self.timeline.advance(1.5)
        self.assertEqual(self.game.lives, 2)
        self.assertEqual(self.game.state, GameState.PLAYING)

    def test_best_score_kept_across_games(self) -> None:
        self.game.start()
        self.timeline.advance(1.5)
        self.game.tap_icon(self.game.icons[0].id)
        self.timeline.advance(10)
        self.assertEqual(self.game.state, GameState.GAME_OVER)
        self.assertEqual(self.game.ledger.best_score, 10)
        self.assertEqual(self.game.ledger.total_taps, 1)

        self.assertTrue(self.game.start())
        self.assertEqual(self.game.score, 0)
        self.timeline.advance(10)
        self.assertEqual(self.game.ledger.games_played, 2)
        self.assertEqual(self.game.ledger.best_score, 10)

    def test_back_to_menu(self) -> None:
        self.game.start()
        self.timeline.advance(2)
        self.game.back_to_menu()
        self.assertEqual(self.game.state, GameState.MENU)
        self.assertEqual(self.game.icons, [])
        self.assertEqual(self.timeline.pending(), 0)
        self.assertEqual(self.game.ledger.games_played, 0)

    def test_snapshot(self) -> None:
        self.game.start()
        self.timeline.advance(1.5)
        snap = self.game.snapshot()
        self.assertEqual(snap["state"], "playing")
        self.assertEqual(len(snap["icons"]), 1)


if __name__ == "__main__":
    unittest.main()
