import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import requests
from loguru import logger

from db import ExerciseExistsError, ExerciseRepository

MUSCLE_GROUPS = [
    "abdominals",
    "abductors",
    "adductors",
    "biceps",
    "calves",
    "chest",
    "forearms",
    "glutes",
    "hamstrings",
    "lats",
    "lower_back",
    "middle_back",
    "neck",
    "quadriceps",
    "traps",
    "triceps",
    "shoulders",
]

EXERCISE_TYPES = [
    "cardio",
    "olympic_weightlifting",
    "plyometrics",
    "powerlifting",
    "strength",
    "stretching",
    "strongman",
]

PAGE_SIZE = 10


@dataclass
class ImportResult:
    inserted: int = 0
    skipped: int = 0
    failed: int = 0


class NinjaExerciseSource:
    """Pages through the API Ninjas exercise endpoint."""

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.api-ninjas.com/v1/exercises",
        session: Optional[requests.Session] = None,
        delay: float = 0.1,
        timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url
        self.session = session or requests.Session()
        self.delay = delay
        self.timeout = timeout

    def _get(self, **params) -> List[dict]:
        resp = self.session.get(
            self.api_url,
            headers={"X-Api-Key": self.api_key},
            params=params,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def _pause(self) -> None:
        if self.delay:
            time.sleep(self.delay)

    def fetch_all(self) -> List[dict]:
        found: Dict[str, dict] = {}
        for muscle in MUSCLE_GROUPS:
            logger.info("Fetching {} exercises", muscle)
            offset = 0
            try:
                while True:
                    page = self._get(muscle=muscle, offset=offset)
                    for exercise in page:
                        found.setdefault(exercise.get("name"), exercise)
                    offset += len(page)
                    self._pause()
                    if len(page) < PAGE_SIZE:
                        break
            except (requests.RequestException, ValueError) as e:
                logger.error("Error fetching {} exercises: {}", muscle, e)
            logger.info("Found {} unique exercises so far", len(found))
        # types catch exercises without a muscle category
        for exercise_type in EXERCISE_TYPES:
            logger.info("Fetching {} exercises", exercise_type)
            try:
                for exercise in self._get(type=exercise_type, offset=0):
                    found.setdefault(exercise.get("name"), exercise)
                self._pause()
            except (requests.RequestException, ValueError) as e:
                logger.error("Error fetching {} exercises: {}", exercise_type, e)
        found.pop(None, None)
        logger.info("Total unique exercises found: {}", len(found))
        return list(found.values())


def populate(repo: ExerciseRepository, exercises: Iterable[dict]) -> ImportResult:
    """Insert exercises whose names are not stored yet."""
    result = ImportResult()
    for exercise in exercises:
        name = exercise.get("name")
        if repo.exists(name):
            result.skipped += 1
            continue
        try:
            repo.create(
                name,
                exercise.get("type") or "unknown",
                exercise.get("muscle") or "unknown",
                exercise.get("equipment") or "none",
                exercise.get("difficulty") or "beginner",
                exercise.get("instructions") or "No instructions available",
            )
        except ExerciseExistsError:
            result.skipped += 1
            continue
        except ValueError as e:
            logger.error("Error inserting exercise {!r}: {}", name, e)
            result.failed += 1
            continue
        result.inserted += 1
        if result.inserted % 50 == 0:
            logger.info("Inserted {} exercises", result.inserted)
    logger.info(
        "Import complete: {} inserted, {} skipped, {} failed",
        result.inserted,
        result.skipped,
        result.failed,
    )
    return result
