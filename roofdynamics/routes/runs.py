"""Run routes used by the dashboard."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from roofdynamics.config import settings
from roofdynamics.database import get_db
from roofdynamics.dependencies import StageBuilder, get_dispatcher, get_stage_builder
from roofdynamics.exceptions import RunNotFoundError, RunStateError
from roofdynamics.models.run import AnalysisRun
from roofdynamics.schemas.run import RunCreate, RunList, RunResponse, RunStatus
from roofdynamics.services.dispatch import PipelineDispatcher
from roofdynamics.services.progress import phase_for_run, progress_for_phase
from roofdynamics.services.run_store import RunStore
from roofdynamics.services.stage_client import IMAGERY

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/runs", tags=["runs"])


def to_status(run: AnalysisRun) -> RunStatus:
    record = run.to_dict()
    phase = phase_for_run(record)
    return RunStatus(
        **record,
        phase=phase,
        progress_percent=progress_for_phase(phase),
        is_terminal=run.is_terminal,
    )


def _require(store: RunStore, run_id: str) -> AnalysisRun:
    try:
        return store.require(run_id)
    except RunNotFoundError:
        raise HTTPException(status_code=404, detail="Run not found")


def start_run(
    address: str,
    db: Session,
    build_stage: StageBuilder,
    dispatcher: PipelineDispatcher,
) -> AnalysisRun:
    """Create a run, fetch its imagery, then hand it to the orchestrator.

    Imagery runs synchronously; the orchestrator is fire-and-forget. A failure
    while starting is recorded on the run, which is returned either way.
    """
    store = RunStore(db)
    try:
        run = store.create(address)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    run_id = str(run.id)

    try:
        build_stage(IMAGERY, db).execute({"run_id": run_id, "address": run.address})
    except Exception as e:
        # The imagery stage has recorded the failure on the run
        logger.error(f"Imagery fetch failed for run {run_id}: {e}")
        return store.require(run_id)

    try:
        job_id = dispatcher.dispatch(run_id)
        logger.info(f"Dispatched pipeline for run {run_id} (job {job_id})")
    except Exception as e:
        logger.error(f"Error starting analysis pipeline for run {run_id}: {e}")
        db.rollback()
        store.mark_failed(run_id, f"Pipeline failed: {e}")

    return store.require(run_id)


@router.post("", response_model=RunStatus, status_code=201)
def create_run(
    data: RunCreate,
    db: Session = Depends(get_db),
    build_stage: StageBuilder = Depends(get_stage_builder),
    dispatcher: PipelineDispatcher = Depends(get_dispatcher),
):
    """Submit an address for analysis."""
    run = start_run(data.address, db, build_stage, dispatcher)
    return to_status(run)


@router.get("", response_model=RunList)
def list_runs(
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Recent runs, newest first."""
    runs = RunStore(db).list_recent(limit or settings.HISTORY_LIMIT)
    return RunList(runs=[RunResponse(**r.to_dict()) for r in runs])


@router.get("/{run_id}", response_model=RunStatus)
def get_run(run_id: str, db: Session = Depends(get_db)):
    """Get a run and the dashboard phase it maps to."""
    return to_status(_require(RunStore(db), run_id))


@router.post("/{run_id}/cancel", response_model=RunStatus)
def cancel_run(run_id: str, db: Session = Depends(get_db)):
    """Request cancellation; it takes effect at the next stage boundary."""
    store = RunStore(db)
    _require(store, run_id)
    try:
        run = store.request_cancel(run_id)
    except RunStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return to_status(run)


@router.post("/{run_id}/retry", response_model=RunStatus, status_code=201)
def retry_run(
    run_id: str,
    db: Session = Depends(get_db),
    build_stage: StageBuilder = Depends(get_stage_builder),
    dispatcher: PipelineDispatcher = Depends(get_dispatcher),
):
    """Resubmit a finished run's address as a brand-new run."""
    previous = _require(RunStore(db), run_id)
    if not previous.is_terminal:
        raise HTTPException(status_code=409, detail=f"Run {run_id} is still {previous.status}")

    logger.info(f"Retrying run {run_id} as a new run")
    run = start_run(previous.address, db, build_stage, dispatcher)
    return to_status(run)
