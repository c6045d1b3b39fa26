import argparse
import json

from config import load_settings
from db import ExerciseRepository
from image_service import ImageDatasetService
from import_service import NinjaExerciseSource, populate
from logging_config import configure_logging
from migrate import migrate

SAMPLE_EXERCISES = [
    ("Barbell Curl", "strength", "biceps", "barbell", "beginner",
     "Curl the bar up to shoulder height, then lower it under control."),
    ("Bench Press", "strength", "chest", "barbell", "intermediate",
     "Lower the bar to the chest and press it back to lockout."),
    ("Tricep Dip", "strength", "triceps", "body_only", "intermediate",
     "Lower the body between the bars and press back up."),
    ("Pull-Up", "strength", "back", "body_only", "intermediate",
     "Hang from the bar and pull the chin over it."),
]


def demo_data(db_path: str) -> int:
    """Populate the database with sample exercises if empty."""
    repo = ExerciseRepository(db_path)
    if repo.count():
        print("Database already contains exercises")
        return 0
    for row in SAMPLE_EXERCISES:
        repo.create(*row)
    print("Demo data inserted")
    return len(SAMPLE_EXERCISES)


def populate_db(db_path: str, api_key: str, api_url: str, force: bool = False) -> None:
    repo = ExerciseRepository(db_path)
    existing = repo.count()
    if existing and not force:
        print(f"Database already contains {existing} exercises; use --force to re-populate")
        return
    if not api_key:
        raise SystemExit("ninja_api_key is not configured (set NINJA_API_KEY)")
    source = NinjaExerciseSource(api_key, api_url)
    result = populate(repo, source.fetch_all())
    print(f"Inserted: {result.inserted}")
    print(f"Skipped (duplicates): {result.skipped}")
    print(f"Total in database: {repo.count()}")


def show_stats(db_path: str) -> dict:
    repo = ExerciseRepository(db_path)
    stats = {
        "total": repo.count(),
        "favorites": repo.count(is_favorited=True),
    }
    print(json.dumps(stats))
    return stats


def match_image(name: str, dataset_url: str, base_url: str) -> dict:
    service = ImageDatasetService(dataset_url, base_url)
    result = service.lookup_images_sync(name).to_dict()
    print(json.dumps(result, indent=2))
    return result


def main() -> None:
    parser = argparse.ArgumentParser(description="Exercise catalog commands")
    parser.add_argument("--yaml", default="settings.yaml")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("serve")
    sub.add_parser("migrate")

    pop = sub.add_parser("populate")
    pop.add_argument("--force", action="store_true")

    sub.add_parser("demo")
    sub.add_parser("stats")

    match = sub.add_parser("match")
    match.add_argument("name")

    args = parser.parse_args()
    settings = load_settings(args.yaml)
    configure_logging(settings.log_level)

    if args.cmd == "serve":
        import uvicorn

        uvicorn.run("rest_api:app", host=settings.host, port=settings.port)
    elif args.cmd == "migrate":
        migrate(settings.db_path)
        ExerciseRepository(settings.db_path)
    elif args.cmd == "populate":
        populate_db(
            settings.db_path, settings.ninja_api_key, settings.ninja_api_url, args.force
        )
    elif args.cmd == "demo":
        demo_data(settings.db_path)
    elif args.cmd == "stats":
        show_stats(settings.db_path)
    elif args.cmd == "match":
        match_image(args.name, settings.image_dataset_url, settings.image_base_url)


if __name__ == "__main__":
    main()
