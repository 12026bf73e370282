"""Imagery stage: attaches a placeholder satellite imagery record to a run."""

import logging
from datetime import datetime
from typing import Any, Callable, Dict

from roofdynamics.models.run import PROCESSING, STEP_IMAGERY, STEP_IMAGERY_COMPLETE
from roofdynamics.stages.base import BaseStage, StageResult

logger = logging.getLogger(__name__)

# Fixed coordinates; no geocoding happens yet
PLACEHOLDER_COORDINATES = {"lat": 40.7128, "lng": -74.0060}


def build_placeholder_imagery(address: str, source_url: str, captured_at: datetime) -> Dict[str, Any]:
    return {
        "address": address,
        "coordinates": dict(PLACEHOLDER_COORDINATES),
        "satellite_url": source_url,
        "resolution": "high",
        "date_captured": captured_at.isoformat(),
        "metadata": {
            "zoom_level": 18,
            "image_format": "jpeg",
            "source": "mock",
        },
    }


class ImageryStage(BaseStage):
    """Stage that records imagery for the run's address."""

    NAME = "fetch-satellite-imagery"

    def __init__(self, db_session, placeholder_url: str, clock: Callable[[], datetime] = datetime.utcnow):
        super().__init__(db_session)
        self.placeholder_url = placeholder_url
        self.clock = clock

    def _run(self, payload: Dict[str, Any]) -> StageResult:
        run_id = payload["run_id"]
        run = self.store.require(run_id)
        address = payload.get("address") or run.address

        self.store.update(run.id, status=PROCESSING, current_step=STEP_IMAGERY)

        imagery = build_placeholder_imagery(address, self.placeholder_url, self.clock())
        self.store.update(run.id, imagery=imagery, current_step=STEP_IMAGERY_COMPLETE)

        return StageResult(data={"imagery": imagery})
