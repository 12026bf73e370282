"""Pipeline stages: imagery, analysis and report."""

from roofdynamics.stages.analysis import AnalysisStage
from roofdynamics.stages.base import BaseStage, StageResult
from roofdynamics.stages.imagery import ImageryStage
from roofdynamics.stages.report import ReportStage

__all__ = [
    "AnalysisStage",
    "BaseStage",
    "ImageryStage",
    "ReportStage",
    "StageResult",
]
