"""Stage function routes.

Each endpoint answers ``{"success": true, ...}`` with HTTP 200, the
cancelled body ``{"success": false, "cancelled": true}`` with HTTP 200, or
``{"success": false, "error": ...}`` with HTTP 500.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from roofdynamics.database import get_db
from roofdynamics.dependencies import StageBuilder, get_orchestrator, get_stage_builder
from roofdynamics.schemas.functions import ImageryRequest, StageRequest
from roofdynamics.services.orchestrator import Orchestrator
from roofdynamics.services.stage_client import ANALYSIS, IMAGERY, PIPELINE, REPORT
from roofdynamics.stages.base import BaseStage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["functions"])


def _error_response(name: str, error: Exception) -> JSONResponse:
    logger.error(f"Error in {name}: {error}")
    return JSONResponse(status_code=500, content={"success": False, "error": str(error)})


def _execute(stage: BaseStage, payload: Dict[str, Any]):
    try:
        result = stage.execute(payload)
    except Exception as e:
        return _error_response(stage.NAME, e)
    return result.to_response()


@router.post(f"/{IMAGERY}")
def fetch_satellite_imagery(
    data: ImageryRequest,
    db: Session = Depends(get_db),
    build_stage: StageBuilder = Depends(get_stage_builder),
):
    """Attach imagery to a run."""
    return _execute(build_stage(IMAGERY, db), {"run_id": data.run_id, "address": data.address})


@router.post(f"/{ANALYSIS}")
def process_openai_analysis(
    data: StageRequest,
    db: Session = Depends(get_db),
    build_stage: StageBuilder = Depends(get_stage_builder),
):
    """Produce the structured roof analysis for a run."""
    return _execute(build_stage(ANALYSIS, db), {"run_id": data.run_id})


@router.post(f"/{REPORT}")
def generate_pdf_report(
    data: StageRequest,
    db: Session = Depends(get_db),
    build_stage: StageBuilder = Depends(get_stage_builder),
):
    """Render and store the report for a run."""
    return _execute(build_stage(REPORT, db), {"run_id": data.run_id})


@router.post(f"/{PIPELINE}")
def run_full_pipeline(
    data: StageRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """Run analysis and report for a run whose imagery is done."""
    try:
        return orchestrator.run(data.run_id)
    except Exception as e:
        return _error_response(PIPELINE, e)
