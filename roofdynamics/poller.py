"""Client-side polling of a run until it reaches a terminal status."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from roofdynamics.config import settings
from roofdynamics.models.run import TERMINAL_STATUSES
from roofdynamics.services.progress import IMAGERY_PHASE, phase_for_run

logger = logging.getLogger(__name__)

RunRecord = Dict[str, Any]


@dataclass
class PollOutcome:
    """Last observation of a run when polling stopped."""

    run: Optional[RunRecord]
    phase: str
    status: Optional[str]
    timed_out: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class RunPoller:
    """Re-reads a run every ``interval`` seconds until it is terminal.

    Polling gives up after ``timeout`` seconds of wall-clock time. On timeout
    the outcome carries ``timed_out=True`` and the run record is left as it
    was; the poller has no authority over the run.
    """

    def __init__(
        self,
        fetch_run: Callable[[str], Optional[RunRecord]],
        interval: float = settings.POLL_INTERVAL,
        timeout: float = settings.POLL_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fetch_run = fetch_run
        self.interval = interval
        self.timeout = timeout
        self.clock = clock
        self.sleep = sleep

    def poll(
        self,
        run_id: str,
        on_update: Optional[Callable[[RunRecord, str], None]] = None,
    ) -> PollOutcome:
        deadline = self.clock() + self.timeout
        run = None
        phase = IMAGERY_PHASE

        while True:
            run = self.fetch_run(run_id)
            if run is not None:
                phase = phase_for_run(run, previous=phase)
                if on_update is not None:
                    on_update(run, phase)
                if run.get("status") in TERMINAL_STATUSES:
                    logger.info(f"Run {run_id} reached {run['status']}")
                    return PollOutcome(run=run, phase=phase, status=run["status"])

            if self.clock() + self.interval > deadline:
                logger.warning(f"Stopped polling run {run_id} after {self.timeout}s without a terminal status")
                return PollOutcome(
                    run=run,
                    phase=phase,
                    status=run.get("status") if run else None,
                    timed_out=True,
                )

            self.sleep(self.interval)
