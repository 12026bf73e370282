"""Fire-and-forget dispatch of the orchestrator."""

import logging
import uuid
from typing import Any, Callable

from sqlalchemy.orm import Session

from roofdynamics.models.job import Job

logger = logging.getLogger(__name__)

INLINE = "inline"
WORKER = "worker"


class PipelineDispatcher:
    """Starts the orchestrator for a run and returns a job id.

    Modes:
    - inline: run the orchestrator immediately in the calling process (dev/tests)
    - worker: enqueue a job row for the background worker
    """

    def __init__(self, mode: str, session_factory: Callable[[], Session], run_pipeline: Callable[[str], Any]):
        if mode not in (INLINE, WORKER):
            raise ValueError(f"Unknown dispatch mode: {mode}")
        self.mode = mode
        self.session_factory = session_factory
        self.run_pipeline = run_pipeline

    def dispatch(self, run_id: str) -> str:
        if self.mode == WORKER:
            return self._enqueue(run_id)

        try:
            self.run_pipeline(run_id)
        except Exception as e:
            # The run record already carries the failure
            logger.error(f"Inline pipeline for run {run_id} failed: {e}")
        return str(uuid.uuid4())

    def _enqueue(self, run_id: str) -> str:
        db = self.session_factory()
        try:
            job = Job(
                run_id=uuid.UUID(str(run_id)),
                kind="pipeline",
                status="queued",
                payload={"run_id": str(run_id)},
            )
            db.add(job)
            db.commit()
            logger.info(f"Enqueued pipeline job {job.job_id} for run {run_id}")
            return str(job.job_id)
        finally:
            db.close()
