import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Body, APIRouter, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from loguru import logger

from config import APP_VERSION, load_settings
from db import (
    AsyncExerciseRepository,
    ExerciseExistsError,
    FIELD_COLUMNS,
    MissingFieldsError,
    REQUIRED_FIELDS,
)
from image_service import ImageDatasetService
from logging_config import configure_logging
from migrate import migrate
from settings_schema import SettingsSchema

DEFAULT_MUSCLE_GROUPS = ["biceps", "triceps", "chest", "back", "shoulders", "legs"]

STATS_MUSCLES = [
    "biceps",
    "triceps",
    "chest",
    "back",
    "shoulders",
    "legs",
    "abdominals",
    "calves",
    "glutes",
    "hamstrings",
    "quadriceps",
]


class CatalogAPI:
    """Provides REST endpoints for browsing and editing the exercise catalog."""

    def __init__(
        self,
        db_path: str = "exercises.db",
        settings: Optional[SettingsSchema] = None,
        *,
        dataset_service: Optional[ImageDatasetService] = None,
        load_images_on_startup: bool = True,
    ) -> None:
        self.db_path = db_path
        self.settings = settings or SettingsSchema(db_path=db_path)
        migrate(db_path)
        self.exercises = AsyncExerciseRepository(db_path)
        self.images = dataset_service or ImageDatasetService(
            self.settings.image_dataset_url,
            self.settings.image_base_url,
            timeout=self.settings.request_timeout,
        )
        self._load_task: Optional[asyncio.Task] = None
        self.app = FastAPI(
            title="Exercise Catalog API",
            description="REST API for the exercise catalog and image lookup",
            version=APP_VERSION,
            lifespan=self._lifespan if load_images_on_startup else None,
        )
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=self.settings.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        self._setup_error_handlers()
        self._setup_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        self._load_task = asyncio.create_task(self.images.load())
        yield
        if not self._load_task.done():
            self._load_task.cancel()

    def _setup_error_handlers(self) -> None:
        @self.app.exception_handler(StarletteHTTPException)
        async def http_error(request: Request, exc: StarletteHTTPException):
            body = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
            return JSONResponse(status_code=exc.status_code, content=body)

        @self.app.exception_handler(RequestValidationError)
        async def validation_error(request: Request, exc: RequestValidationError):
            errors = exc.errors()
            # only exercise ids are typed path parameters
            if any(tuple(err.get("loc", ()))[:1] == ("path",) for err in errors):
                return JSONResponse(status_code=404, content={"error": "Exercise not found"})
            message = "; ".join(
                "{}: {}".format(".".join(str(p) for p in err.get("loc", ())), err.get("msg"))
                for err in errors
            )
            return JSONResponse(status_code=400, content={"error": message})

        @self.app.exception_handler(Exception)
        async def unexpected_error(request: Request, exc: Exception):
            logger.exception("Unhandled error on {} {}", request.method, request.url.path)
            return JSONResponse(status_code=500, content={"error": str(exc)})

    def _setup_routes(self) -> None:
        exercises_router = APIRouter(prefix="/api/exercises", tags=["Exercises"])

        @self.app.get("/")
        def root():
            return {"message": "Exercise API is running"}

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        async def health():
            """Return API, database and image dataset status."""
            try:
                await self.exercises.count()
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))
            return {"status": "ok", "images": self.images.state.value}

        @exercises_router.get("")
        async def list_exercises(
            muscle: str = None,
            type: str = None,
            difficulty: str = None,
            favorited: Optional[bool] = None,
            limit: int = None,
            offset: int = None,
            per_muscle: int = 10,
        ):
            if any(v is not None for v in (muscle, type, difficulty, favorited, limit, offset)):
                return await self.exercises.fetch_exercises(
                    muscle=muscle,
                    exercise_type=type,
                    difficulty=difficulty,
                    is_favorited=favorited,
                    limit=limit,
                    offset=offset,
                )
            result = []
            for group in DEFAULT_MUSCLE_GROUPS:
                rows = await self.exercises.fetch_exercises(muscle=group, limit=per_muscle)
                logger.debug("Fetched {} {} exercises", len(rows), group)
                result.extend(rows)
            logger.info("Fetched {} exercises", len(result))
            return result

        @exercises_router.get("/search")
        async def search_exercises(query: str = "", limit: int = 100):
            if not query.strip():
                raise HTTPException(
                    status_code=400,
                    detail={
                        "error": "Query parameter is required",
                        "message": "Please provide a search query",
                    },
                )
            rows = await self.exercises.search(query, limit)
            logger.info("Found {} exercises for {!r}", len(rows), query)
            return rows

        @exercises_router.get("/favorites")
        async def list_favorites():
            return await self.exercises.fetch_favorites()

        @exercises_router.patch("/{exercise_id}/favorite")
        async def toggle_favorite(exercise_id: int):
            record = await self.exercises.toggle_favorite(exercise_id)
            if record is None:
                raise HTTPException(status_code=404, detail="Exercise not found")
            logger.info(
                "Toggled favorite for exercise {}: {}", exercise_id, record["is_favorited"]
            )
            return record

        @exercises_router.get("/{exercise_id}")
        async def get_exercise(exercise_id: int):
            record = await self.exercises.fetch(exercise_id)
            if record is None:
                raise HTTPException(status_code=404, detail="Exercise not found")
            return record

        @exercises_router.post("", status_code=201)
        async def create_exercise(payload: Optional[dict] = Body(None)):
            payload = payload or {}
            try:
                eid = await self.exercises.create(
                    payload.get("name"),
                    payload.get("type"),
                    payload.get("muscle"),
                    payload.get("equipment"),
                    payload.get("difficulty"),
                    payload.get("instructions"),
                    payload.get("is_favorited", False),
                )
            except MissingFieldsError:
                raise HTTPException(
                    status_code=400,
                    detail={"error": "Missing required fields", "required": REQUIRED_FIELDS},
                )
            except ExerciseExistsError as e:
                raise HTTPException(status_code=409, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            logger.info("Created new exercise: {}", payload.get("name"))
            return await self.exercises.fetch(eid)

        @exercises_router.put("/{exercise_id}")
        async def update_exercise(exercise_id: int, payload: dict = Body(...)):
            try:
                fields = {k: v for k, v in payload.items() if k in FIELD_COLUMNS}
                changed = await self.exercises.update(exercise_id, **fields)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            if not changed:
                raise HTTPException(status_code=404, detail="Exercise not found")
            logger.info("Updated exercise ID {}", exercise_id)
            return await self.exercises.fetch(exercise_id)

        @exercises_router.delete("/{exercise_id}")
        async def delete_exercise(exercise_id: int):
            if not await self.exercises.delete(exercise_id):
                raise HTTPException(status_code=404, detail="Exercise not found")
            logger.info("Deleted exercise ID {}", exercise_id)
            return {"message": "Exercise deleted successfully"}

        @self.app.get("/api/db/stats")
        async def db_stats():
            by_muscle = {}
            for muscle in STATS_MUSCLES:
                count = await self.exercises.count(muscle=muscle)
                if count > 0:
                    by_muscle[muscle] = count
            return {
                "total": await self.exercises.count(),
                "favorites": await self.exercises.count(is_favorited=True),
                "byMuscle": by_muscle,
            }

        @self.app.get("/api/exercise-image/{exercise_name:path}")
        async def exercise_image(exercise_name: str):
            result = await self.images.lookup_images(exercise_name)
            return result.to_dict()

        self.app.include_router(exercises_router)


def create_api(yaml_path: str = "settings.yaml") -> CatalogAPI:
    settings = load_settings(yaml_path)
    configure_logging(settings.log_level)
    return CatalogAPI(settings.db_path, settings)


api = create_api()
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=api.settings.host, port=api.settings.port)
