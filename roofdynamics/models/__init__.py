"""SQLAlchemy ORM models."""

from roofdynamics.models.job import Job
from roofdynamics.models.run import AnalysisRun

__all__ = [
    "AnalysisRun",
    "Job",
]
