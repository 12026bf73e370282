"""Runs analysis then report for a run, honouring its cancellation flag."""

import logging
from typing import Any, Callable, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from roofdynamics.exceptions import RunNotFoundError, StageError
from roofdynamics.services.run_store import RunStore
from roofdynamics.services.stage_client import ANALYSIS, REPORT, StageClient

logger = logging.getLogger(__name__)

CANCELLED_RESPONSE = {"success": False, "cancelled": True}


class Orchestrator:
    """Drives a run from imagery_complete to a terminal status.

    Cancellation is cooperative: the flag is read before the analysis stage
    and again before the report stage. A cancel request that arrives while a
    stage is in flight does not interrupt it; the stage finishes and the
    next checkpoint observes the flag. Once the report stage has passed its
    own check, the run completes even if cancellation is requested.

    Stage failures are terminal for the run. Nothing is retried.
    """

    def __init__(self, session_factory: Callable[[], Session], stage_client: StageClient):
        self.session_factory = session_factory
        self.stages = stage_client

    def run(self, run_id: str) -> Dict[str, Any]:
        """Run the remaining stages.

        Returns:
            ``{"success": True, "runId", "pdfUrl"}`` or the cancelled response

        Raises:
            RunNotFoundError: If the run does not exist
            Exception: The stage or store error, after the run was marked failed
        """
        db = self.session_factory()
        store = RunStore(db)
        try:
            run = store.require(run_id)
            run_id = str(run.id)
            logger.info(f"Starting full pipeline orchestration for run {run_id}")

            if self._cancelled(store, run_id, "before processing"):
                return dict(CANCELLED_RESPONSE)

            logger.info(f"Step 1: Starting analysis for run {run_id}")
            analysis_result = self.stages.invoke(ANALYSIS, run_id)
            if not analysis_result.get("success"):
                if analysis_result.get("cancelled"):
                    logger.info(f"Run {run_id} was cancelled during analysis")
                    return dict(CANCELLED_RESPONSE)
                raise StageError(f"OpenAI analysis failed: {analysis_result.get('error')}")

            if self._cancelled(store, run_id, "after analysis"):
                return dict(CANCELLED_RESPONSE)

            logger.info(f"Step 2: Starting report generation for run {run_id}")
            report_result = self.stages.invoke(REPORT, run_id)
            if not report_result.get("success"):
                if report_result.get("cancelled"):
                    logger.info(f"Run {run_id} was cancelled during report generation")
                    return dict(CANCELLED_RESPONSE)
                raise StageError(f"Report generation failed: {report_result.get('error')}")

            store.mark_completed(run_id)
            logger.info(f"Successfully completed full pipeline for run {run_id}")

            return {"success": True, "runId": run_id, "pdfUrl": report_result.get("url")}

        except RunNotFoundError:
            raise
        except Exception as e:
            logger.error(f"Error in pipeline for run {run_id}: {e}")
            self._record_failure(db, store, run_id, e)
            raise
        finally:
            db.close()

    def _cancelled(self, store: RunStore, run_id: str, checkpoint: str) -> bool:
        if not store.is_cancel_requested(run_id):
            return False
        store.mark_cancelled(run_id)
        logger.info(f"Run {run_id} was cancelled {checkpoint}")
        return True

    def _record_failure(self, db: Session, store: RunStore, run_id: str, error: Exception) -> None:
        db.rollback()
        try:
            store.mark_failed(run_id, str(error))
        except (RunNotFoundError, SQLAlchemyError) as db_error:
            logger.error(f"Failed to update run {run_id} with error status: {db_error}")
