"""Base stage with cancellation and failure bookkeeping."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from roofdynamics.exceptions import RunNotFoundError
from roofdynamics.models.run import AnalysisRun
from roofdynamics.services.run_store import RunStore

logger = logging.getLogger(__name__)


@dataclass
class StageResult:
    """Outcome of a stage that did not raise."""

    success: bool = True
    cancelled: bool = False
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def cancelled_result(cls) -> "StageResult":
        return cls(success=False, cancelled=True)

    def to_response(self) -> Dict[str, Any]:
        """JSON body returned by the stage endpoint."""
        if self.cancelled:
            return {"success": False, "cancelled": True}
        return {"success": self.success, **self.data}


class BaseStage:
    """Base class for all pipeline stages.

    A stage that fails records the failure on its run before the exception
    propagates, so the run never stays in ``processing`` after an error.
    """

    NAME = "stage"

    def __init__(self, db_session: Session):
        """Initialize base stage."""
        self.db = db_session
        self.store = RunStore(db_session)

    def execute(self, payload: Dict[str, Any]) -> StageResult:
        """
        Execute the stage for one run.

        Args:
            payload: Input payload dict; always carries 'run_id'

        Returns:
            StageResult (cancelled=True when the run's cancel flag was set)

        Raises:
            Exception: Whatever the stage raised, after it was recorded on the run
        """
        run_id = payload["run_id"]
        logger.info(f"Stage {self.NAME} starting for run {run_id}")

        try:
            result = self._run(payload)
        except Exception as e:
            logger.error(f"Stage {self.NAME} error for run {run_id}: {e}")
            self._record_failure(run_id, e)
            raise

        if result.cancelled:
            logger.info(f"Stage {self.NAME} observed cancellation for run {run_id}")
        else:
            logger.info(f"Stage {self.NAME} succeeded for run {run_id}")
        return result

    def _run(self, payload: Dict[str, Any]) -> StageResult:
        """
        Run the stage logic (to be implemented by subclasses).

        Args:
            payload: Input payload

        Returns:
            StageResult
        """
        raise NotImplementedError

    def _cancel_if_requested(self, run: AnalysisRun) -> bool:
        """Mark the run cancelled if its flag is set. Returns True when it was."""
        if not run.cancel_requested:
            return False
        self.store.mark_cancelled(run.id)
        return True

    def _record_failure(self, run_id: str, error: Exception) -> None:
        self.db.rollback()
        try:
            self.store.mark_failed(run_id, str(error))
        except RunNotFoundError:
            logger.warning(f"Cannot record failure for unknown run {run_id}")
        except SQLAlchemyError as db_error:
            logger.error(f"Failed to update run {run_id} with error status: {db_error}")
