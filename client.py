import requests
from typing import Optional
from urllib.parse import quote


class CatalogClient:
    """Simple REST client for the exercise catalog API."""

    def __init__(self, base_url: str = "http://localhost:3000", timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def list_exercises(self, **params):
        resp = requests.get(self._url("/api/exercises"), params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def search(self, query: str, limit: int = 100):
        resp = requests.get(
            self._url("/api/exercises/search"),
            params={"query": query, "limit": limit},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def get(self, exercise_id: int) -> Optional[dict]:
        resp = requests.get(self._url(f"/api/exercises/{exercise_id}"), timeout=self.timeout)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    def create(self, **fields) -> dict:
        resp = requests.post(self._url("/api/exercises"), json=fields, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def update(self, exercise_id: int, **fields) -> dict:
        resp = requests.put(
            self._url(f"/api/exercises/{exercise_id}"), json=fields, timeout=self.timeout
        )
        resp.raise_for_status()
        return resp.json()

    def delete(self, exercise_id: int) -> None:
        resp = requests.delete(self._url(f"/api/exercises/{exercise_id}"), timeout=self.timeout)
        resp.raise_for_status()

    def favorites(self):
        resp = requests.get(self._url("/api/exercises/favorites"), timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def toggle_favorite(self, exercise_id: int) -> Optional[dict]:
        resp = requests.patch(
            self._url(f"/api/exercises/{exercise_id}/favorite"), timeout=self.timeout
        )
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    def stats(self) -> dict:
        resp = requests.get(self._url("/api/db/stats"), timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def exercise_images(self, name: str) -> dict:
        resp = requests.get(
            self._url(f"/api/exercise-image/{quote(name, safe='')}"), timeout=self.timeout
        )
        resp.raise_for_status()
        return resp.json()
