"""Storage for generated report artifacts."""

import logging
import os
from typing import Optional
from urllib.parse import quote

import httpx

from roofdynamics.exceptions import UpstreamError

logger = logging.getLogger(__name__)


class ArtifactStore:
    """Stores named blobs and hands out public URLs for them."""

    def put(self, name: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``name`` and return its public URL."""
        raise NotImplementedError

    def public_url(self, name: str) -> str:
        raise NotImplementedError


class LocalArtifactStore(ArtifactStore):
    """Writes artifacts to a directory served by the app under ``/artifacts``."""

    def __init__(self, directory: str, base_url: str):
        self.directory = directory
        self.base_url = base_url.rstrip("/")

    def _path(self, name: str) -> str:
        if os.path.basename(name) != name or name in ("", ".", ".."):
            raise ValueError(f"Invalid artifact name: {name!r}")
        return os.path.join(self.directory, name)

    def put(self, name: str, data: bytes, content_type: str) -> str:
        path = self._path(name)
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise UpstreamError(f"Failed to store artifact {name}: {e}") from e

        logger.info(f"Stored artifact {name} ({len(data)} bytes, {content_type})")
        return self.public_url(name)

    def public_url(self, name: str) -> str:
        return f"{self.base_url}/{quote(name)}"


class SupabaseArtifactStore(ArtifactStore):
    """Supabase Storage bucket accessed through its REST API."""

    def __init__(
        self,
        supabase_url: str,
        service_key: str,
        bucket: str = "reports",
        http_client: Optional[httpx.Client] = None,
    ):
        self.supabase_url = supabase_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self._http_client = http_client

    def _build_headers(self, content_type: str) -> dict:
        return {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
            "Content-Type": content_type,
            "cache-control": "3600",
            "x-upsert": "true",
        }

    def put(self, name: str, data: bytes, content_type: str) -> str:
        url = f"{self.supabase_url}/storage/v1/object/{self.bucket}/{quote(name)}"
        try:
            if self._http_client is not None:
                response = self._http_client.post(url, headers=self._build_headers(content_type), content=data)
            else:
                with httpx.Client(timeout=60.0) as client:
                    response = client.post(url, headers=self._build_headers(content_type), content=data)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Storage upload failed: {e}") from e

        if response.is_error:
            logger.error(f"Error uploading {name}: {response.status_code} {response.text}")
            raise UpstreamError(
                f"Storage upload failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        logger.info(f"Uploaded {name} to bucket {self.bucket}")
        return self.public_url(name)

    def public_url(self, name: str) -> str:
        return f"{self.supabase_url}/storage/v1/object/public/{self.bucket}/{quote(name)}"
