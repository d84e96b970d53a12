import datetime
import logging
import random
import time
from typing import Callable

from fastapi import APIRouter, FastAPI, HTTPException

from clock import Clock
from config import APP_VERSION, load_settings
from db import (
    ChallengeRepository,
    GameStatsRepository,
    ProgressRepository,
    TemplateRepository,
    WorkoutRepository,
)
from gamification_service import GamificationService
from models import ActivityKind, ChallengeKind, Exercise
from progression_service import ProgressionEngine
from seed_sample_data import seed_defaults
from session_service import WorkoutSessionController, format_elapsed
from stats_service import StatisticsService
from tap_game_service import TapGameController


def _parse_timestamp(value: str) -> datetime.datetime:
    """Parse an ISO date, converting aware values to naive local time."""
    parsed = datetime.datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


class FitnessAPI:
    """Provides REST endpoints for sessions, challenges and the tap game."""

    def __init__(
        self,
        db_path: str = "pulse.db",
        yaml_path: str = "settings.yaml",
        *,
        session_clock: Clock | None = None,
        game_clock: Clock | None = None,
        spawn_clock: Clock | None = None,
        time_source: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime.datetime] = datetime.datetime.now,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = load_settings(yaml_path)
        self.workouts = WorkoutRepository(db_path)
        self.templates = TemplateRepository(db_path)
        self.challenges = ChallengeRepository(db_path)
        self.progress = ProgressRepository(db_path)
        self.game_stats = GameStatsRepository(db_path)
        self._now = now
        rng = rng or random.Random()
        if self.settings.seed_defaults:
            seed_defaults(
                self.templates,
                self.challenges,
                now=now(),
                days=self.settings.challenge_days,
                rng=rng,
            )
        self.gamification = GamificationService(self.progress)
        self.sessions = WorkoutSessionController(
            self.workouts,
            self.gamification.ledger,
            self.progress,
            clock=session_clock,
            now=now,
            default_name=self.settings.default_workout_name,
        )
        self.progression = ProgressionEngine(
            self.challenges,
            self.workouts,
            self.gamification.ledger,
            self.progress,
            rng=rng,
            now=now,
        )
        self.game = TapGameController(
            self.game_stats,
            game_clock=game_clock,
            spawn_clock=spawn_clock,
            time_source=time_source,
            rng=rng,
        )
        self.statistics = StatisticsService(self.workouts, self.gamification, now=now)
        self.app = FastAPI(
            title="SportsPulse API",
            description="Workout sessions, challenges and the tap game",
            version=APP_VERSION,
        )
        self._setup_routes()

    def _session_payload(self) -> dict:
        session = self.sessions.session
        return {
            "state": self.sessions.state,
            "elapsed": format_elapsed(self.sessions.elapsed_seconds),
            "session": session.model_dump(mode="json") if session else None,
        }

    def _challenge_payload(self, challenge) -> dict:
        data = challenge.model_dump(mode="json")
        data["progress_percentage"] = challenge.progress_percentage
        data["is_eligible"] = challenge.is_eligible
        data["is_expired"] = challenge.is_expired(self._now())
        data["progress_text"] = self.progression.format_progress(challenge)
        data["time_remaining"] = self.progression.format_time_remaining(challenge)
        return data

    def _setup_routes(self) -> None:
        # handlers are async so controller state is only touched on the loop thread
        sessions_router = APIRouter(prefix="/sessions", tags=["Sessions"])
        challenges_router = APIRouter(prefix="/challenges", tags=["Challenges"])
        game_router = APIRouter(prefix="/game", tags=["Tap Game"])

        @self.app.get("/health")
        async def health():
            return {"status": "ok", "version": APP_VERSION}

        @sessions_router.get("/current")
        async def current_session():
            return self._session_payload()

        @sessions_router.post("/start")
        async def start_session(
            template_id: str | None = None,
            name: str | None = None,
            kind: ActivityKind | None = None,
        ):
            template = None
            if template_id is not None:
                template = self.templates.fetch(template_id)
                if template is None:
                    raise HTTPException(status_code=404, detail="template not found")
            if self.sessions.start(template, name=name, kind=kind) is None:
                raise HTTPException(status_code=409, detail="session already running")
            return self._session_payload()

        @sessions_router.post("/pause")
        async def pause_session():
            if not self.sessions.pause():
                raise HTTPException(status_code=409, detail="no running session")
            return self._session_payload()

        @sessions_router.post("/resume")
        async def resume_session():
            if not self.sessions.resume():
                raise HTTPException(status_code=409, detail="no paused session")
            return self._session_payload()

        @sessions_router.post("/finish")
        async def finish_session(calories: int = 0):
            record = self.sessions.finish(calories)
            if record is None:
                raise HTTPException(status_code=409, detail="no active session")
            return record.model_dump(mode="json")

        @sessions_router.post("/cancel")
        async def cancel_session():
            if not self.sessions.cancel():
                raise HTTPException(status_code=409, detail="no active session")
            return {"status": "cancelled"}

        @sessions_router.post("/exercises")
        async def add_exercise(
            name: str,
            sets: int = 1,
            reps: int = 1,
            weight: float = 0.0,
            rest_seconds: float = 60.0,
            notes: str = "",
        ):
            exercise = Exercise(
                name=name,
                sets=sets,
                reps=reps,
                weight=weight,
                rest_seconds=rest_seconds,
                notes=notes,
            )
            if not self.sessions.add_exercise(exercise):
                raise HTTPException(status_code=409, detail="no active session")
            return {"id": exercise.id}

        @sessions_router.put("/exercises/{exercise_id}")
        async def update_exercise(
            exercise_id: str,
            name: str,
            sets: int = 1,
            reps: int = 1,
            weight: float = 0.0,
            rest_seconds: float = 60.0,
            notes: str = "",
        ):
            exercise = Exercise(
                id=exercise_id,
                name=name,
                sets=sets,
                reps=reps,
                weight=weight,
                rest_seconds=rest_seconds,
                notes=notes,
            )
            if not self.sessions.update_exercise(exercise):
                raise HTTPException(status_code=404, detail="exercise not found")
            return {"status": "updated"}

        @sessions_router.delete("/exercises/{exercise_id}")
        async def remove_exercise(exercise_id: str):
            if not self.sessions.remove_exercise(exercise_id):
                raise HTTPException(status_code=404, detail="exercise not found")
            return {"status": "deleted"}

        @self.app.get("/workouts")
        async def list_workouts(start_date: str = None, end_date: str = None):
            try:
                if start_date or end_date:
                    start = _parse_timestamp(start_date or "0001-01-01")
                    end = (
                        _parse_timestamp(end_date)
                        if end_date
                        else datetime.datetime.max
                    )
                    records = self.workouts.fetch_between(start, end)
                else:
                    records = self.workouts.load()
            except (ValueError, OverflowError):
                raise HTTPException(
                    status_code=400, detail="dates must be in ISO format"
                )
            return [r.model_dump(mode="json") for r in records]

        @self.app.put("/workouts/{workout_id}/notes")
        async def update_workout_notes(workout_id: str, notes: str):
            record = self.workouts.fetch(workout_id)
            if record is None:
                raise HTTPException(status_code=404, detail="workout not found")
            record.notes = notes
            self.workouts.update(record)
            return {"status": "updated"}

        @self.app.delete("/workouts/{workout_id}")
        async def delete_workout(workout_id: str):
            if not self.workouts.delete(workout_id):
                raise HTTPException(status_code=404, detail="workout not found")
            return {"status": "deleted"}

        @self.app.get("/templates")
        async def list_templates():
            return [t.model_dump(mode="json") for t in self.templates.load()]

        @self.app.post("/templates/from_workout/{workout_id}")
        async def template_from_workout(workout_id: str):
            record = self.workouts.fetch(workout_id)
            if record is None:
                raise HTTPException(status_code=404, detail="workout not found")
            template = self.templates.create_from_record(record)
            return {"id": template.id, "name": template.name}

        @challenges_router.get("")
        async def list_challenges(status: str = "all"):
            groups = {
                "all": self.progression.challenges,
                "active": self.progression.active_challenges,
                "completed": self.progression.completed_challenges,
                "global": self.progression.global_challenges,
                "personal": self.progression.personal_challenges,
                "eligible": self.progression.eligible_challenges,
            }
            if status not in groups:
                raise HTTPException(status_code=400, detail="unknown filter")
            return [self._challenge_payload(c) for c in groups[status]]

        @challenges_router.post("")
        async def create_challenge(
            title: str,
            kind: ChallengeKind,
            target_value: float,
            days: int = 7,
            description: str = "",
        ):
            try:
                challenge = self.progression.create_custom_challenge(
                    title, description, kind, target_value, days * 86400
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": challenge.id}

        @challenges_router.post("/refresh")
        async def refresh_challenges():
            return [self._challenge_payload(c) for c in self.progression.refresh()]

        @challenges_router.post("/{challenge_id}/complete")
        async def complete_challenge(challenge_id: str):
            if self.progression.get_challenge(challenge_id) is None:
                raise HTTPException(status_code=404, detail="challenge not found")
            if not self.progression.complete_challenge(challenge_id):
                raise HTTPException(
                    status_code=409, detail="challenge cannot be completed"
                )
            return {
                "status": "completed",
                "total_points": self.gamification.total_points(),
            }

        @self.app.get("/progress")
        async def progress():
            return self.gamification.ledger.model_dump(mode="json")

        @self.app.get("/progress/level")
        async def level_progress():
            return self.gamification.level_progress()

        @self.app.get("/progress/streak")
        async def streak():
            return self.gamification.streak()

        @self.app.get("/badges/recent")
        async def recent_badges(days: int = 7):
            return [
                b.model_dump(mode="json")
                for b in self.gamification.recent_badges(days, now=self._now())
            ]

        @self.app.get("/badges/by_rarity")
        async def badges_by_rarity():
            return {
                rarity.value: [b.model_dump(mode="json") for b in badges]
                for rarity, badges in self.gamification.badges_by_rarity().items()
            }

        @self.app.get("/stats/workouts")
        async def workout_stats():
            return self.statistics.workout_stats()

        @self.app.get("/stats/weekly")
        async def weekly_workouts():
            return [r.model_dump(mode="json") for r in self.statistics.weekly_workouts()]

        @self.app.get("/stats/progress")
        async def progress_stats():
            return self.statistics.progress_stats(self.progression.challenges)

        @game_router.get("")
        async def game_state():
            return self.game.snapshot()

        @game_router.get("/stats")
        async def game_stats():
            return self.game.ledger.model_dump(mode="json")

        @game_router.post("/start")
        async def game_start():
            if not self.game.start():
                raise HTTPException(status_code=409, detail="game already running")
            return self.game.snapshot()

        @game_router.post("/pause")
        async def game_pause():
            if not self.game.pause():
                raise HTTPException(status_code=409, detail="game not running")
            return self.game.snapshot()

        @game_router.post("/resume")
        async def game_resume():
            if not self.game.resume():
                raise HTTPException(status_code=409, detail="game not paused")
            return self.game.snapshot()

        @game_router.post("/menu")
        async def game_menu():
            self.game.back_to_menu()
            return self.game.snapshot()

        @game_router.post("/tap/{icon_id}")
        async def game_tap(icon_id: str):
            hit = self.game.tap_icon(icon_id)
            return {"hit": hit, "score": self.game.score}

        self.app.include_router(sessions_router)
        self.app.include_router(challenges_router)
        self.app.include_router(game_router)


api = None


def get_app():
    """Return the ASGI app for ``uvicorn rest_api:get_app --factory``."""
    global api
    if api is None:
        api = FitnessAPI()
    return api.app


if __name__ == "__main__":
    import uvicorn

    app = get_app()
    logging.basicConfig(level=api.settings.log_level)
    uvicorn.run(app)
