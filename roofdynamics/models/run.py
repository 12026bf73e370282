"""Analysis run model."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Index, Text, Uuid

from roofdynamics.database import Base, JSONType

# Run status values, in lifecycle order
QUEUED = "queued"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"
CANCELLED = "cancelled"

TERMINAL_STATUSES = frozenset({COMPLETED, FAILED, CANCELLED})

STATUS_RANK = {
    QUEUED: 0,
    PROCESSING: 1,
    COMPLETED: 2,
    FAILED: 2,
    CANCELLED: 2,
}

# current_step markers (advisory, drive the dashboard progress display)
STEP_INITIALIZING = "initializing"
STEP_IMAGERY = "imagery"
STEP_IMAGERY_COMPLETE = "imagery_complete"
STEP_AI_ANALYSIS = "ai_analysis"
STEP_ANALYSIS_COMPLETE = "analysis_complete"
STEP_GENERATING_PDF = "generating_pdf"
STEP_PDF_COMPLETE = "pdf_complete"
STEP_COMPLETED = "completed"
STEP_CANCELLED = "cancelled"
STEP_FAILED = "failed"


class AnalysisRun(Base):
    """One end-to-end roof analysis request for a single address."""

    __tablename__ = "analysis_runs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    address = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default=QUEUED)
    current_step = Column(Text, default=STEP_INITIALIZING)
    cancel_requested = Column(Boolean, nullable=False, default=False)
    imagery = Column(JSONType)
    analysis = Column(JSONType)
    pdf_url = Column(Text)
    run_metadata = Column("metadata", JSONType)  # token usage, model used
    error_message = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_analysis_runs_created_at", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "address": self.address,
            "status": self.status,
            "current_step": self.current_step,
            "cancel_requested": bool(self.cancel_requested),
            "imagery": self.imagery,
            "analysis": self.analysis,
            "pdf_url": self.pdf_url,
            "metadata": self.run_metadata,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
