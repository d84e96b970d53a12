import requests
from typing import Optional

class FitnessClient:
    """Simple REST client for the SportsPulse API."""

    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _post(self, path: str, **params):
        resp = requests.post(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def _get(self, path: str, **params):
        resp = requests.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def start_session(
        self, template_id: Optional[str] = None, name: Optional[str] = None, kind: Optional[str] = None
    ) -> dict:
        params = {k: v for k, v in {"template_id": template_id, "name": name, "kind": kind}.items() if v is not None}
        return self._post("/sessions/start", **params)

    def finish_session(self, calories: int = 0) -> dict:
        return self._post("/sessions/finish", calories=calories)

    def cancel_session(self) -> dict:
        return self._post("/sessions/cancel")

    def list_workouts(self, **params: str):
        return self._get("/workouts", **params)

    def list_challenges(self, status: str = "all"):
        return self._get("/challenges", status=status)

    def refresh_challenges(self):
        return self._post("/challenges/refresh")

    def complete_challenge(self, challenge_id: str) -> bool:
        resp = requests.post(
            f"{self.base_url}/challenges/{challenge_id}/complete", timeout=self.timeout
        )
        if resp.status_code == 409:
            return False
        resp.raise_for_status()
        return True

    def progress(self) -> dict:
        return self._get("/progress")

    def start_game(self) -> dict:
        return self._post("/game/start")

    def tap(self, icon_id: str) -> bool:
        return self._post(f"/game/tap/{icon_id}")["hit"]
