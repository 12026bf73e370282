"""Report stage: renders the analysis and stores the report artifact."""

import logging
from datetime import datetime
from typing import Any, Dict

from roofdynamics.exceptions import PreconditionError
from roofdynamics.models.run import STEP_GENERATING_PDF, STEP_PDF_COMPLETE
from roofdynamics.services.artifact_store import ArtifactStore
from roofdynamics.services.report_renderer import render_report_html, render_report_text
from roofdynamics.stages.base import BaseStage, StageResult

logger = logging.getLogger(__name__)


def report_name(run_id, extension: str = "txt") -> str:
    return f"roof-report-{run_id}.{extension}"


class ReportStage(BaseStage):
    """Stage that turns the stored analysis into a downloadable report."""

    NAME = "generate-pdf-report"

    def __init__(self, db_session, artifact_store: ArtifactStore):
        super().__init__(db_session)
        self.artifacts = artifact_store

    def _run(self, payload: Dict[str, Any]) -> StageResult:
        run = self.store.require(payload["run_id"])

        if self._cancel_if_requested(run):
            return StageResult.cancelled_result()

        if not run.analysis:
            raise PreconditionError("No analysis data found for report generation")

        self.store.update(run.id, current_step=STEP_GENERATING_PDF)

        report_date = (run.created_at or datetime.utcnow()).date()
        text = render_report_text(run.analysis, run.address, report_date)
        html = render_report_html(run.analysis, run.address, report_date)

        # The text report is the run artifact; the HTML rendering follows it
        url = self.artifacts.put(report_name(run.id), text.encode("utf-8"), "text/plain; charset=utf-8")
        html_url = self.artifacts.put(report_name(run.id, "html"), html.encode("utf-8"), "text/html; charset=utf-8")

        self.store.update(run.id, pdf_url=url, current_step=STEP_PDF_COMPLETE)
        logger.info(f"Stored report for run {run.id} at {url}")

        return StageResult(data={"url": url, "html_url": html_url})
