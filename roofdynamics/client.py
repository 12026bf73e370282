"""HTTP client for the dashboard API."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from roofdynamics.exceptions import RunNotFoundError

logger = logging.getLogger(__name__)


class RunsApiClient:
    """Thin wrapper over the ``/runs`` endpoints."""

    def __init__(self, base_url: str = "http://localhost:8000", http_client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.http = http_client or httpx.Client(base_url=self.base_url, timeout=30.0)

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def create_run(self, address: str) -> Dict[str, Any]:
        response = self.http.post(self._url("/runs"), json={"address": address})
        response.raise_for_status()
        return response.json()

    def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        """Return the run record, or None if it does not exist."""
        response = self.http.get(self._url(f"/runs/{run_id}"))
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    def list_runs(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {"limit": limit} if limit else None
        response = self.http.get(self._url("/runs"), params=params)
        response.raise_for_status()
        return response.json()["runs"]

    def cancel_run(self, run_id: str) -> Dict[str, Any]:
        response = self.http.post(self._url(f"/runs/{run_id}/cancel"))
        if response.status_code == 404:
            raise RunNotFoundError(f"Run not found: {run_id}")
        response.raise_for_status()
        return response.json()

    def retry_run(self, run_id: str) -> Dict[str, Any]:
        response = self.http.post(self._url(f"/runs/{run_id}/retry"))
        if response.status_code == 404:
            raise RunNotFoundError(f"Run not found: {run_id}")
        response.raise_for_status()
        return response.json()

    def close(self):
        self.http.close()
