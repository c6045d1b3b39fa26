import asyncio
import os
import sys
from unittest import mock

import pytest
import requests

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from image_service import DatasetState, ImageDatasetService, fetch_dataset

BASE = "https://images.test/exercises"
DATASET = [
    {"name": "Barbell Curl", "images": ["Barbell_Curl/0.jpg", "Barbell_Curl/1.jpg"]},
    {"name": "Plank", "images": []},
    {"name": "Bench Press", "images": ["Bench_Press/0.jpg"]},
]


class CountingLoader:
    def __init__(self, results):
        self.results = list(results)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.mark.asyncio
async def test_lookup_loads_lazily_and_matches():
    loader = CountingLoader([DATASET])
    service = ImageDatasetService(image_base_url=BASE, loader=loader)
    assert service.state == DatasetState.UNLOADED
    result = await service.lookup_images("barbell-curl")
    assert result.to_dict() == {
        "images": [f"{BASE}/Barbell_Curl/0.jpg", f"{BASE}/Barbell_Curl/1.jpg"],
        "found": True,
    }
    assert service.state == DatasetState.LOADED
    await service.lookup_images("bench press")
    assert loader.calls == 1


@pytest.mark.asyncio
async def test_failed_load_degrades_and_retries():
    loader = CountingLoader([requests.ConnectionError("offline"), DATASET])
    service = ImageDatasetService(image_base_url=BASE, loader=loader)

    result = await service.lookup_images("bench press")
    assert result.to_dict() == {"images": None, "found": False}
    assert service.state == DatasetState.LOAD_FAILED
    assert service.entries is None

    result = await service.lookup_images("bench press")
    assert result.found is True
    assert loader.calls == 2


@pytest.mark.asyncio
async def test_malformed_dataset_is_load_failure():
    service = ImageDatasetService(
        image_base_url=BASE, loader=CountingLoader([ValueError("bad json")])
    )
    assert await service.load() is False
    assert (await service.lookup_images("curl")).found is False


@pytest.mark.asyncio
async def test_empty_images_match_is_not_found():
    service = ImageDatasetService(image_base_url=BASE, loader=CountingLoader([DATASET]))
    result = await service.lookup_images("plank")
    assert result.to_dict() == {"images": None, "found": False}


@pytest.mark.asyncio
async def test_concurrent_lookups_share_one_fetch():
    loader = CountingLoader([DATASET])
    service = ImageDatasetService(image_base_url=BASE, loader=loader)
    results = await asyncio.gather(*(service.lookup_images("curl") for _ in range(5)))
    assert all(r.found for r in results)
    assert loader.calls == 1


@pytest.mark.asyncio
async def test_lookup_never_raises_on_matcher_error():
    service = ImageDatasetService(image_base_url=BASE, loader=CountingLoader([DATASET]))
    with mock.patch("image_service.match_images", side_effect=RuntimeError("boom")):
        result = await service.lookup_images("curl")
    assert result.to_dict() == {"images": None, "found": False}


def test_fetch_dataset_uses_requests():
    response = mock.Mock()
    response.json.return_value = DATASET
    with mock.patch("image_service.requests.get", return_value=response) as get:
        data = fetch_dataset("https://data.test/exercises.json", timeout=5)
    get.assert_called_once_with("https://data.test/exercises.json", timeout=5)
    response.raise_for_status.assert_called_once()
    assert data == DATASET


def test_fetch_dataset_rejects_non_list():
    response = mock.Mock()
    response.json.return_value = {"name": "not a list"}
    with mock.patch("image_service.requests.get", return_value=response):
        with pytest.raises(ValueError):
            fetch_dataset("https://data.test/exercises.json")


@pytest.mark.asyncio
async def test_nameless_dataset_entries_are_skipped():
    raw = [{"images": ["Mystery/0.jpg"]}] + DATASET
    service = ImageDatasetService(image_base_url=BASE, loader=CountingLoader([raw]))
    result = await service.lookup_images("bench press")
    assert result.images == [f"{BASE}/Bench_Press/0.jpg"]
    assert len(service.entries) == len(DATASET)


@pytest.mark.asyncio
async def test_cancelled_load_is_marked_failed():
    loader = CountingLoader([DATASET])
    service = ImageDatasetService(image_base_url=BASE, loader=loader)
    with mock.patch(
        "image_service.asyncio.to_thread", side_effect=asyncio.CancelledError
    ):
        with pytest.raises(asyncio.CancelledError):
            await service.load()
    assert service.state == DatasetState.LOAD_FAILED

    assert (await service.lookup_images("curl")).found is True
    assert service.state == DatasetState.LOADED
