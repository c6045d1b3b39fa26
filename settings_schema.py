from typing import List

from pydantic import BaseModel, ValidationError

DEFAULT_DATASET_URL = (
    "https://raw.githubusercontent.com/yuhonas/free-exercise-db/main/dist/exercises.json"
)
DEFAULT_IMAGE_BASE_URL = (
    "https://raw.githubusercontent.com/yuhonas/free-exercise-db/main/exercises"
)


class SettingsSchema(BaseModel):
    db_path: str = "exercises.db"
    host: str = "127.0.0.1"
    port: int = 3000
    image_dataset_url: str = DEFAULT_DATASET_URL
    image_base_url: str = DEFAULT_IMAGE_BASE_URL
    ninja_api_key: str = ""
    ninja_api_url: str = "https://api.api-ninjas.com/v1/exercises"
    request_timeout: float = 30.0
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
