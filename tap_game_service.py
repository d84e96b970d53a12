from __future__ import annotations
import logging
import random
import time
from typing import Callable, Optional

from clock import Clock
from db import GameStatsRepository
from models import GameLedger, GameState, SpawnedIcon

logger = logging.getLogger(__name__)


class TapGameController:
    """Reflex mini-game: tap fitness icons before they disappear.

    Two clocks drive a round. The game tick ages icons, counts the 30 second
    countdown down and ramps difficulty; the spawn tick adds icons while
    fewer than :attr:`MAX_ICONS` are on screen. Every missed icon costs a
    life and the round ends when lives or time run out.
    """

    MAX_ICONS = 5
    START_LIVES = 3
    ROUND_SECONDS = 30.0
    TICK_SECONDS = 0.1
    START_SPAWN_INTERVAL = 1.5
    MIN_SPAWN_INTERVAL = 0.5
    MAX_SPEED = 2.0
    POINTS_PER_TAP = 10
    SIZE_RANGE = (50.0, 80.0)
    LIFESPAN_RANGE = (1.5, 3.0)
    X_RANGE = (0.1, 0.9)
    Y_RANGE = (0.1, 0.8)
    ICON_PALETTE = [
        ("dumbbell.fill", "#E74C3C"),
        ("figure.run", "#3498DB"),
        ("heart.fill", "#E91E63"),
        ("flame.fill", "#FF5722"),
        ("figure.strengthtraining.traditional", "#9C27B0"),
        ("timer", "#FF9800"),
        ("figure.flexibility", "#4CAF50"),
        ("sportscourt.fill", "#2196F3"),
    ]

    def __init__(
        self,
        stats_repo: GameStatsRepository | None = None,
        ledger: GameLedger | None = None,
        game_clock: Clock | None = None,
        spawn_clock: Clock | None = None,
        time_source: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self.stats = stats_repo
        if ledger is None:
            ledger = stats_repo.load() if stats_repo is not None else GameLedger()
        self.ledger = ledger
        self.game_clock = game_clock or Clock(name="game")
        self.spawn_clock = spawn_clock or Clock(name="spawn")
        self._now = time_source
        self.rng = rng or random.Random()

        self.state = GameState.MENU
        self.score = 0
        self.lives = self.START_LIVES
        self.time_remaining = self.ROUND_SECONDS
        self.tap_count = 0
        self.icons: list[SpawnedIcon] = []
        self.game_speed = 1.0
        self.spawn_interval = self.START_SPAWN_INTERVAL
        self._paused_at = 0.0

    def start(self) -> bool:
        if self.state not in (GameState.MENU, GameState.GAME_OVER):
            return False
        self.score = 0
        self.lives = self.START_LIVES
        self.time_remaining = self.ROUND_SECONDS
        self.tap_count = 0
        self.icons = []
        self.game_speed = 1.0
        self.spawn_interval = self.START_SPAWN_INTERVAL
        self.state = GameState.PLAYING
        self._start_clocks()
        logger.info("tap game started")
        return True

    def pause(self) -> bool:
        if self.state != GameState.PLAYING:
            return False
        self.state = GameState.PAUSED
        self._paused_at = self._now()
        self._stop_clocks()
        return True

    def resume(self) -> bool:
        if self.state != GameState.PAUSED:
            return False
        # icons do not age while paused
        paused_for = self._now() - self._paused_at
        for icon in self.icons:
            icon.spawned_at += paused_for
        self.state = GameState.PLAYING
        self._start_clocks()
        return True

    def back_to_menu(self) -> None:
        self._stop_clocks()
        self.icons = []
        self.state = GameState.MENU

    def tap_icon(self, icon_id: str) -> bool:
        """Score a tap on ``icon_id``; unknown or expired icons are ignored."""
        if self.state != GameState.PLAYING:
            return False
        for idx, icon in enumerate(self.icons):
            if icon.id == icon_id:
                del self.icons[idx]
                self.score += self.POINTS_PER_TAP
                self.tap_count += 1
                return True
        return False

    def spawn_icon(self) -> Optional[SpawnedIcon]:
        if self.state != GameState.PLAYING or len(self.icons) >= self.MAX_ICONS:
            return None
        symbol, color = self.rng.choice(self.ICON_PALETTE)
        icon = SpawnedIcon(
            position=(
                self.rng.uniform(*self.X_RANGE),
                self.rng.uniform(*self.Y_RANGE),
            ),
            visual_kind=symbol,
            color=color,
            size=self.rng.uniform(*self.SIZE_RANGE),
            spawned_at=self._now(),
            lifespan_seconds=self.rng.uniform(*self.LIFESPAN_RANGE),
        )
        self.icons.append(icon)
        return icon

    def _game_tick(self) -> None:
        if self.state != GameState.PLAYING:
            return
        now = self._now()
        expired = [i for i in self.icons if i.is_expired(now)]
        if expired:
            gone = {i.id for i in expired}
            self.icons = [i for i in self.icons if i.id not in gone]
            self.lives = max(0, self.lives - len(expired))
            logger.debug("%d icon(s) missed, %d lives left", len(expired), self.lives)
            if self.lives <= 0:
                self._end_game()
                return

        self.time_remaining = round(self.time_remaining - self.TICK_SECONDS, 1)
        if self.time_remaining <= 0:
            self.time_remaining = 0.0
            self._end_game()
            return

        if int(self.time_remaining) % 10 == 0 and self.game_speed < self.MAX_SPEED:
            self.game_speed = round(self.game_speed + 0.1, 1)
            self._set_spawn_interval(
                max(self.MIN_SPAWN_INTERVAL, round(self.spawn_interval - 0.1, 1))
            )

    def _set_spawn_interval(self, interval: float) -> None:
        if interval == self.spawn_interval:
            return
        self.spawn_interval = interval
        if self.state == GameState.PLAYING:
            self.spawn_clock.start(self.spawn_interval, self.spawn_icon)

    def _end_game(self) -> None:
        self.state = GameState.GAME_OVER
        self._stop_clocks()
        self.ledger.record_game(self.score, self.tap_count)
        if self.stats is not None:
            self.stats.save(self.ledger)
        logger.info(
            "tap game over: score %d, %d taps, best %d",
            self.score,
            self.tap_count,
            self.ledger.best_score,
        )

    def _start_clocks(self) -> None:
        self.game_clock.start(self.TICK_SECONDS, self._game_tick)
        self.spawn_clock.start(self.spawn_interval, self.spawn_icon)

    def _stop_clocks(self) -> None:
        self.game_clock.stop()
        self.spawn_clock.stop()

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "score": self.score,
            "lives": self.lives,
            "time_remaining": self.time_remaining,
            "tap_count": self.tap_count,
            "game_speed": self.game_speed,
            "spawn_interval": self.spawn_interval,
            "icons": [i.model_dump() for i in self.icons],
        }
