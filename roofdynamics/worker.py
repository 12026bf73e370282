"""Background worker for processing pipeline jobs."""

import logging
import time
from datetime import datetime
from typing import Callable, Optional

import sqlalchemy
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session
from tenacity import RetryError, retry, retry_if_exception_type, stop_after_delay, wait_fixed

from roofdynamics.config import settings
from roofdynamics.database import SessionLocal
from roofdynamics.dependencies import build_orchestrator
from roofdynamics.models.job import Job
from roofdynamics.services.orchestrator import Orchestrator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


class Worker:
    """Background worker that runs the orchestrator for queued jobs.

    A failed job is not retried; the run it belongs to is already failed.
    """

    def __init__(
        self,
        orchestrator: Optional[Orchestrator] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        poll_interval: float = settings.WORKER_POLL_INTERVAL,
        ready_timeout: float = settings.DATABASE_READY_TIMEOUT,
    ):
        """Initialize worker."""
        self.session_factory = session_factory
        self.orchestrator = orchestrator or build_orchestrator(session_factory=session_factory)
        self.poll_interval = poll_interval
        self.ready_timeout = ready_timeout

    def wait_for_database(self) -> bool:
        """Block until the jobs table is queryable. Returns False on timeout."""

        @retry(
            retry=retry_if_exception_type((OperationalError, ProgrammingError)),
            stop=stop_after_delay(self.ready_timeout),
            wait=wait_fixed(2),
        )
        def _probe():
            db = self.session_factory()
            try:
                db.execute(sqlalchemy.text("SELECT 1 FROM jobs LIMIT 1"))
            finally:
                db.close()

        try:
            _probe()
        except RetryError:
            logger.error(f"Database not ready after {self.ready_timeout} seconds, starting anyway...")
            return False

        logger.info("Database is ready, starting worker loop")
        return True

    def run(self, stop_event=None):
        """Main worker loop.

        Args:
            stop_event: Optional threading.Event to signal worker to stop
        """
        logger.info("Worker started - waiting for database to be ready...")
        self.wait_for_database()

        while True:
            if stop_event and stop_event.is_set():
                logger.info("Worker stop signal received")
                break

            try:
                if not self.run_once():
                    self._pause(stop_event)

            except KeyboardInterrupt:
                logger.info("Worker shutting down")
                break
            except Exception as e:
                logger.error(f"Worker error: {e}", exc_info=True)
                self._pause(stop_event)

    def _pause(self, stop_event=None):
        """Sleep for one poll interval, waking early on the stop signal."""
        if stop_event:
            stop_event.wait(self.poll_interval)
        else:
            time.sleep(self.poll_interval)

    def run_once(self) -> bool:
        """Claim and process one job. Returns False when the queue is empty."""
        db = self.session_factory()
        try:
            job = self.claim_next_job(db)
            if job is None:
                return False
            self.process_job(job, db)
            return True
        finally:
            db.close()

    def claim_next_job(self, db: Session) -> Optional[Job]:
        """Get the next queued job and mark it running."""
        job = (
            db.query(Job)
            .filter(Job.status == "queued")
            .order_by(Job.created_at)
            .with_for_update(skip_locked=True)
            .first()
        )
        if job is None:
            db.rollback()
            return None

        job.status = "running"
        job.updated_at = datetime.utcnow()
        db.commit()
        return job

    def process_job(self, job: Job, db: Session):
        """Process a single claimed job."""
        logger.info(f"Processing job {job.job_id} (run: {job.run_id})")

        try:
            result = self.orchestrator.run(str(job.run_id))
            job.status = "done"
            db.commit()
            if result.get("cancelled"):
                logger.info(f"Job {job.job_id} finished: run {job.run_id} was cancelled")
            else:
                logger.info(f"Job {job.job_id} completed successfully")

        except Exception as e:
            logger.error(f"Job {job.job_id} failed: {e}", exc_info=True)
            db.rollback()
            job.status = "failed"
            job.last_error = str(e)
            db.commit()


def worker_loop(stop_event=None):
    """Run worker loop (for use as background thread).

    Args:
        stop_event: Optional threading.Event to signal worker to stop
    """
    worker = Worker()
    worker.run(stop_event=stop_event)


def main():
    """Entry point for standalone worker."""
    worker = Worker()
    worker.run()


if __name__ == "__main__":
    main()
