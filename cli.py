import argparse
import json
import logging
import os
import shutil

from config import load_settings
from db import (
    ChallengeRepository,
    ProgressRepository,
    TemplateRepository,
    WorkoutRepository,
)
from gamification_service import GamificationService
from models import ActivityKind, ActivityRecord
from progression_service import ProgressionEngine
from seed_sample_data import seed_defaults
from stats_service import StatisticsService

logger = logging.getLogger(__name__)


def export_workouts(db_path: str, fmt: str, output_dir: str = ".") -> str:
    workouts = WorkoutRepository(db_path)
    if fmt == "csv":
        data = workouts.export_csv()
    else:
        data = workouts.export_json()
    out_path = os.path.join(output_dir, f"workouts.{fmt}")
    with open(out_path, "w", encoding="utf-8") as f:
        f.write(data)
    logger.info("exported workouts to %s", out_path)
    return out_path


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def demo_data(db_path: str) -> None:
    """Populate the database with defaults and a demo workout if empty."""
    workouts = WorkoutRepository(db_path)
    seed_defaults(TemplateRepository(db_path), ChallengeRepository(db_path))
    if workouts.load():
        print("Database already contains workouts")
        return
    record = ActivityRecord(
        name="Demo session",
        kind=ActivityKind.STRENGTH,
        duration_seconds=1800,
        calories_burned=180,
    )
    workouts.append(record)
    gamification = GamificationService(ProgressRepository(db_path))
    gamification.ledger.record_session(record)
    gamification.save()
    print("Demo data inserted")


def refresh_challenges(db_path: str) -> list[str]:
    progress = ProgressRepository(db_path)
    engine = ProgressionEngine(
        ChallengeRepository(db_path),
        WorkoutRepository(db_path),
        progress.load(),
        progress,
    )
    lines = []
    for challenge in engine.refresh():
        mark = "x" if challenge.is_completed else ("!" if challenge.is_eligible else " ")
        lines.append(
            f"[{mark}] {challenge.title}: {engine.format_progress(challenge)} "
            f"({challenge.progress_percentage:.0f}%)"
        )
    return lines


def print_stats(db_path: str) -> None:
    gamification = GamificationService(ProgressRepository(db_path))
    stats = StatisticsService(WorkoutRepository(db_path), gamification)
    summary = stats.workout_stats()
    summary.update(stats.progress_stats(ChallengeRepository(db_path).load()))
    print(json.dumps(summary, indent=2))


def main() -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    parser.add_argument("--settings", default="settings.yaml")
    sub = parser.add_subparsers(dest="cmd", required=True)

    exp = sub.add_parser("export")
    exp.add_argument("--db")
    exp.add_argument("--fmt", choices=["csv", "json"], default="csv")
    exp.add_argument("--out", default=".")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db")

    demo = sub.add_parser("demo")
    demo.add_argument("--db")

    stats = sub.add_parser("stats")
    stats.add_argument("--db")

    refresh = sub.add_parser("refresh")
    refresh.add_argument("--db")

    args = parser.parse_args()
    settings = load_settings(args.settings)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    db_path = args.db or settings.db_path

    if args.cmd == "export":
        print(export_workouts(db_path, args.fmt, args.out))
    elif args.cmd == "backup":
        backup_db(db_path, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, db_path)
    elif args.cmd == "demo":
        demo_data(db_path)
    elif args.cmd == "stats":
        print_stats(db_path)
    elif args.cmd == "refresh":
        for line in refresh_challenges(db_path):
            print(line)


if __name__ == "__main__":
    main()
