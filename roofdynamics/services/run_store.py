"""Persistence for analysis runs.

The run table is the only source of truth for job state. Every write goes
through ``RunStore.update`` so the lifecycle rules hold for all callers:

- status only moves forward (queued -> processing -> terminal);
- a terminal run (completed, failed, cancelled) is never mutated again;
- ``updated_at`` is refreshed on every write.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, List, Optional, Union

from sqlalchemy import update as sql_update
from sqlalchemy.orm import Session

from roofdynamics.exceptions import RunNotFoundError, RunStateError
from roofdynamics.models.run import (
    CANCELLED,
    COMPLETED,
    FAILED,
    QUEUED,
    STATUS_RANK,
    STEP_CANCELLED,
    STEP_COMPLETED,
    STEP_FAILED,
    STEP_INITIALIZING,
    TERMINAL_STATUSES,
    AnalysisRun,
)

logger = logging.getLogger(__name__)

RunId = Union[str, uuid.UUID]

# Columns a caller may write through update()
UPDATABLE_FIELDS = frozenset({
    "status",
    "current_step",
    "cancel_requested",
    "imagery",
    "analysis",
    "pdf_url",
    "run_metadata",
    "error_message",
})


def parse_run_id(run_id: RunId) -> uuid.UUID:
    """Coerce a run id to a UUID, treating malformed ids as unknown runs."""
    if isinstance(run_id, uuid.UUID):
        return run_id
    try:
        return uuid.UUID(str(run_id))
    except ValueError:
        raise RunNotFoundError(f"Run not found: {run_id}")


class RunStore:
    """Read/write access to the ``analysis_runs`` table."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, address: str) -> AnalysisRun:
        address = (address or "").strip()
        if not address:
            raise ValueError("Address is required")

        run = AnalysisRun(
            address=address,
            status=QUEUED,
            current_step=STEP_INITIALIZING,
            cancel_requested=False,
        )
        self.db.add(run)
        self.db.commit()
        self.db.refresh(run)

        logger.info(f"Created run {run.id} for address {address!r}")
        return run

    def get(self, run_id: RunId) -> Optional[AnalysisRun]:
        """Return the current row, bypassing anything cached in the session."""
        try:
            key = parse_run_id(run_id)
        except RunNotFoundError:
            return None
        return self.db.get(AnalysisRun, key, populate_existing=True)

    def require(self, run_id: RunId) -> AnalysisRun:
        run = self.get(run_id)
        if run is None:
            raise RunNotFoundError(f"Run not found: {run_id}")
        return run

    def exists(self, run_id: RunId) -> bool:
        return self.get(run_id) is not None

    def _lock(self, key: uuid.UUID) -> Optional[AnalysisRun]:
        """Read the current row under a row lock (a no-op on SQLite)."""
        return (
            self.db.query(AnalysisRun)
            .filter(AnalysisRun.id == key)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )

    def update(self, run_id: RunId, **fields: Any) -> AnalysisRun:
        """Apply a partial update to a run.

        The write only matches a non-terminal row, so a run that finishes
        between the read and the write is left untouched.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown run fields: {sorted(unknown)}")

        key = parse_run_id(run_id)
        run = self._lock(key)
        if run is None:
            self.db.rollback()
            raise RunNotFoundError(f"Run not found: {run_id}")
        if run.is_terminal:
            self.db.rollback()
            raise RunStateError(f"Run {run.id} is {run.status}; no further changes allowed")

        next_status = fields.get("status")
        if next_status is not None:
            if next_status not in STATUS_RANK:
                self.db.rollback()
                raise RunStateError(f"Unknown status: {next_status}")
            if STATUS_RANK[next_status] < STATUS_RANK[run.status]:
                self.db.rollback()
                raise RunStateError(f"Invalid status transition: {run.status} -> {next_status}")

        values = {getattr(AnalysisRun, name): value for name, value in fields.items()}
        values[AnalysisRun.updated_at] = datetime.utcnow()
        result = self.db.execute(
            sql_update(AnalysisRun)
            .where(AnalysisRun.id == key, AnalysisRun.status.not_in(sorted(TERMINAL_STATUSES)))
            .values(values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            run = self.require(key)
            raise RunStateError(f"Run {run.id} is {run.status}; no further changes allowed")

        self.db.commit()
        self.db.refresh(run)
        return run

    def list_recent(self, limit: Optional[int] = None) -> List[AnalysisRun]:
        query = self.db.query(AnalysisRun).order_by(AnalysisRun.created_at.desc())
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def request_cancel(self, run_id: RunId) -> AnalysisRun:
        """Set the cancellation flag; stages observe it at their next checkpoint."""
        run = self.update(run_id, cancel_requested=True)
        logger.info(f"Cancellation requested for run {run.id}")
        return run

    def is_cancel_requested(self, run_id: RunId) -> bool:
        return bool(self.require(run_id).cancel_requested)

    def mark_cancelled(self, run_id: RunId) -> AnalysisRun:
        run = self.update(run_id, status=CANCELLED, current_step=STEP_CANCELLED)
        logger.info(f"Run {run.id} cancelled")
        return run

    def mark_completed(self, run_id: RunId) -> AnalysisRun:
        run = self.update(run_id, status=COMPLETED, current_step=STEP_COMPLETED)
        logger.info(f"Run {run.id} completed")
        return run

    def mark_failed(self, run_id: RunId, message: str) -> Optional[AnalysisRun]:
        """Record a failure. Returns None when the run is already terminal."""
        run = self.require(run_id)
        if run.is_terminal:
            logger.info(f"Run {run.id} already {run.status}; not recording failure: {message}")
            return None

        try:
            run = self.update(run_id, status=FAILED, current_step=STEP_FAILED, error_message=message)
        except RunStateError as e:
            logger.info(f"Not recording failure for run {run_id}: {e}")
            return None
        logger.error(f"Run {run.id} failed: {message}")
        return run
