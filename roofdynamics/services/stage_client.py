"""Clients the orchestrator uses to invoke pipeline stages."""

import logging
from typing import Any, Callable, Dict, Optional

import httpx
from sqlalchemy.orm import Session

from roofdynamics.exceptions import StageError
from roofdynamics.stages.base import BaseStage

logger = logging.getLogger(__name__)

IMAGERY = "fetch-satellite-imagery"
ANALYSIS = "process-openai-analysis"
REPORT = "generate-pdf-report"
PIPELINE = "run-full-pipeline"


class StageClient:
    """Invokes a stage by name and returns its JSON response body."""

    def invoke(self, name: str, run_id: str, **params: Any) -> Dict[str, Any]:
        raise NotImplementedError


class LocalStageClient(StageClient):
    """Runs stages in-process, each call on its own database session."""

    def __init__(self, session_factory: Callable[[], Session], build_stage: Callable[[str, Session], BaseStage]):
        self.session_factory = session_factory
        self.build_stage = build_stage

    def invoke(self, name: str, run_id: str, **params: Any) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            stage = self.build_stage(name, db)
            result = stage.execute({"run_id": str(run_id), **params})
            return result.to_response()
        except Exception as e:
            raise StageError(f"{name} failed: {e}") from e
        finally:
            db.close()


class HttpStageClient(StageClient):
    """Calls stages through their HTTP function endpoints.

    Calls block until the stage answers; only the transport timeout bounds them.
    """

    def __init__(self, base_url: str, http_client: Optional[httpx.Client] = None, timeout: Optional[float] = None):
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client
        self.timeout = timeout

    def invoke(self, name: str, run_id: str, **params: Any) -> Dict[str, Any]:
        url = f"{self.base_url}/functions/{name}"
        body = {"runId": str(run_id), **params}
        try:
            if self._http_client is not None:
                response = self._http_client.post(url, json=body)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(url, json=body)
        except httpx.HTTPError as e:
            raise StageError(f"{name} failed: {e}") from e

        if response.is_error:
            raise StageError(f"{name} failed: {response.status_code} {response.text}")

        try:
            return response.json()
        except ValueError:
            raise StageError(f"{name} failed: response was not JSON")
