"""Mapping from a run's current_step to the dashboard's four phases."""

from typing import Optional

IMAGERY_PHASE = "imagery"
ANALYSIS_PHASE = "analysis"
CALCULATE_PHASE = "calculate"
REPORT_PHASE = "report"

STEP_PHASES = {
    "initializing": IMAGERY_PHASE,
    "imagery": IMAGERY_PHASE,
    "imagery_complete": IMAGERY_PHASE,
    "ai_analysis": ANALYSIS_PHASE,
    "analysis_complete": CALCULATE_PHASE,
    "generating_pdf": REPORT_PHASE,
    "pdf_complete": REPORT_PHASE,
    "completed": REPORT_PHASE,
}

PHASE_PROGRESS = {
    IMAGERY_PHASE: 25,
    ANALYSIS_PHASE: 50,
    CALCULATE_PHASE: 75,
    REPORT_PHASE: 100,
}


def phase_for_step(current_step: Optional[str], previous: str = IMAGERY_PHASE) -> str:
    """Phase for a step; 'cancelled', 'failed' and unknown steps keep the previous phase."""
    return STEP_PHASES.get(current_step or "", previous)


def progress_for_phase(phase: str) -> int:
    return PHASE_PROGRESS.get(phase, 0)


def phase_for_run(run: dict, previous: str = IMAGERY_PHASE) -> str:
    """Phase for a run record.

    Failed and cancelled runs have no step of their own; their phase is
    inferred from the payloads written before they stopped.
    """
    step = run.get("current_step")
    if step in STEP_PHASES:
        return STEP_PHASES[step]
    if run.get("pdf_url"):
        return REPORT_PHASE
    if run.get("analysis"):
        return CALCULATE_PHASE
    if run.get("imagery"):
        return ANALYSIS_PHASE
    return previous
