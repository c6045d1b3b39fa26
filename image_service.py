import asyncio
import enum
from typing import Callable, Optional, Tuple

import requests
from loguru import logger

from name_matcher import ImageCatalogEntry, ImageLookup, build_catalog, match_images
from settings_schema import DEFAULT_DATASET_URL, DEFAULT_IMAGE_BASE_URL


class DatasetState(str, enum.Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    LOAD_FAILED = "load_failed"


def fetch_dataset(url: str, timeout: float = 30.0) -> list:
    """Download the image reference dataset and return its JSON list."""
    resp = requests.get(url, timeout=timeout)
    resp.raise_for_status()
    data = resp.json()
    if not isinstance(data, list):
        raise ValueError("image dataset is not a list")
    return data


class ImageDatasetService:
    """Holds the image reference dataset and answers image lookups.

    The dataset is fetched at most once per process. A failed fetch leaves
    the service in ``LOAD_FAILED`` and the next lookup tries again. Loads
    are serialized so concurrent lookups share one fetch.
    """

    def __init__(
        self,
        dataset_url: str = DEFAULT_DATASET_URL,
        image_base_url: str = DEFAULT_IMAGE_BASE_URL,
        loader: Optional[Callable[[], list]] = None,
        timeout: float = 30.0,
    ) -> None:
        self.dataset_url = dataset_url
        self.image_base_url = image_base_url
        self.timeout = timeout
        self._loader = loader or (lambda: fetch_dataset(self.dataset_url, self.timeout))
        self._entries: Optional[Tuple[ImageCatalogEntry, ...]] = None
        self._state = DatasetState.UNLOADED
        self._lock = asyncio.Lock()

    @property
    def state(self) -> DatasetState:
        return self._state

    @property
    def entries(self) -> Optional[Tuple[ImageCatalogEntry, ...]]:
        return self._entries

    async def load(self) -> bool:
        async with self._lock:
            if self._state == DatasetState.LOADED:
                return True
            self._state = DatasetState.LOADING
            try:
                raw = await asyncio.to_thread(self._loader)
                entries = build_catalog(raw)
            except asyncio.CancelledError:
                self._state = DatasetState.LOAD_FAILED
                logger.warning("Image dataset load cancelled")
                raise
            except Exception as e:
                self._state = DatasetState.LOAD_FAILED
                logger.warning("Error loading image dataset: {}", e)
                return False
            self._entries = entries
            self._state = DatasetState.LOADED
            logger.info("Loaded {} exercises from image dataset", len(entries))
            return True

    async def ensure_loaded(self) -> bool:
        if self._state == DatasetState.LOADED:
            return True
        return await self.load()

    async def lookup_images(self, exercise_name: str) -> ImageLookup:
        try:
            await self.ensure_loaded()
            result = match_images(exercise_name, self._entries, self.image_base_url)
        except Exception:
            logger.exception("Error looking up images for {!r}", exercise_name)
            return ImageLookup.not_found()
        if result.found:
            logger.debug(
                "Found {} images for {!r}", len(result.images or []), exercise_name
            )
        else:
            logger.debug("No image match for {!r}", exercise_name)
        return result

    def lookup_images_sync(self, exercise_name: str) -> ImageLookup:
        """Blocking lookup for command line use."""
        return asyncio.run(self.lookup_images(exercise_name))

