import sqlite3
import csv
import io
import datetime
import logging
from contextlib import contextmanager
from typing import Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from models import (
    ActivityRecord,
    Challenge,
    DifficultyLevel,
    GameLedger,
    RewardLedger,
    WorkoutTemplate,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "records": (
            """CREATE TABLE records (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    def __init__(self, db_path: str = "pulse.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return
        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols != columns:
            raise ValueError(
                f"table {table} has columns {existing_cols}, expected {columns}"
            )


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")


class RecordStore(BaseRepository):
    """Keyed blob store backing every collection."""

    def get_blob(self, key: str) -> Optional[str]:
        rows = self.fetch_all("SELECT value FROM records WHERE key = ?;", (key,))
        return rows[0][0] if rows else None

    def set_blob(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO records (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )

    def keys(self) -> List[str]:
        return [r[0] for r in self.fetch_all("SELECT key FROM records ORDER BY key;")]

    def delete_all(self) -> None:
        self._delete_all("records")


class CollectionRepository(RecordStore, Generic[M]):
    """A named channel holding a whole list of ``model`` records."""

    key: str = ""
    model: Type[BaseModel] = BaseModel

    def __init__(self, db_path: str = "pulse.db") -> None:
        super().__init__(db_path)
        self._adapter = TypeAdapter(List[self.model])

    def load(self) -> List[M]:
        try:
            blob = self.get_blob(self.key)
        except sqlite3.Error as e:
            logger.warning("could not read %s: %s", self.key, e)
            return []
        if blob is None:
            return []
        try:
            return self._adapter.validate_json(blob)
        except (ValidationError, ValueError) as e:
            logger.warning("discarding undecodable %s collection: %s", self.key, e)
            return []

    def save(self, items: List[M]) -> None:
        data = self._adapter.dump_json(list(items)).decode("utf-8")
        try:
            self.set_blob(self.key, data)
        except sqlite3.Error as e:
            logger.warning("could not save %s: %s", self.key, e)

    def _replace(self, item: M) -> bool:
        items = self.load()
        for idx, existing in enumerate(items):
            if existing.id == item.id:
                items[idx] = item
                self.save(items)
                return True
        return False

    def _remove(self, item_id: str) -> bool:
        items = self.load()
        kept = [i for i in items if i.id != item_id]
        if len(kept) == len(items):
            return False
        self.save(kept)
        return True

    def fetch(self, item_id: str) -> Optional[M]:
        for item in self.load():
            if item.id == item_id:
                return item
        return None


class WorkoutRepository(CollectionRepository[ActivityRecord]):
    """History of finished activity records."""

    key = "workouts"
    model = ActivityRecord

    def append(self, record: ActivityRecord) -> None:
        items = self.load()
        items.append(record)
        self.save(items)

    def update(self, record: ActivityRecord) -> bool:
        return self._replace(record)

    def delete(self, record_id: str) -> bool:
        return self._remove(record_id)

    def fetch_between(
        self, start: datetime.datetime, end: datetime.datetime
    ) -> List[ActivityRecord]:
        return [r for r in self.load() if start <= r.timestamp <= end]

    def export_csv(self) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf)
        writer.writerow(
            ["id", "name", "kind", "timestamp", "duration_seconds", "calories", "exercises"]
        )
        for r in self.load():
            writer.writerow(
                [
                    r.id,
                    r.name,
                    r.kind.value,
                    r.timestamp.isoformat(timespec="seconds"),
                    r.duration_seconds,
                    r.calories_burned,
                    len(r.exercises),
                ]
            )
        return buf.getvalue()

    def export_json(self) -> str:
        return self._adapter.dump_json(self.load(), indent=2).decode("utf-8")


class ChallengeRepository(CollectionRepository[Challenge]):
    """Repository for tracking challenges."""

    key = "challenges"
    model = Challenge

    def add(self, challenge: Challenge) -> None:
        items = self.load()
        items.append(challenge)
        self.save(items)

    def update(self, challenge: Challenge) -> bool:
        return self._replace(challenge)


class TemplateRepository(CollectionRepository[WorkoutTemplate]):
    key = "templates"
    model = WorkoutTemplate

    def add(self, template: WorkoutTemplate) -> None:
        items = self.load()
        items.append(template)
        self.save(items)

    def create_from_record(self, record: ActivityRecord) -> WorkoutTemplate:
        template = WorkoutTemplate(
            name=f"{record.name} Template",
            kind=record.kind,
            exercises=[e.model_copy() for e in record.exercises],
            estimated_duration=record.duration_seconds,
            difficulty=DifficultyLevel.INTERMEDIATE,
        )
        self.add(template)
        return template


class _SingletonRepository(RecordStore):
    key: str = ""
    model: Type[BaseModel] = BaseModel

    def load(self):
        try:
            blob = self.get_blob(self.key)
        except sqlite3.Error as e:
            logger.warning("could not read %s: %s", self.key, e)
            blob = None
        if blob is not None:
            try:
                return self.model.model_validate_json(blob)
            except (ValidationError, ValueError) as e:
                logger.warning("discarding undecodable %s record: %s", self.key, e)
        return self.model()

    def save(self, item: BaseModel) -> None:
        try:
            self.set_blob(self.key, item.model_dump_json())
        except sqlite3.Error as e:
            logger.warning("could not save %s: %s", self.key, e)


class ProgressRepository(_SingletonRepository):
    """Stores the reward ledger."""

    key = "progress"
    model = RewardLedger


class GameStatsRepository(_SingletonRepository):
    """Stores the tap game ledger."""

    key = "gameStats"
    model = GameLedger
