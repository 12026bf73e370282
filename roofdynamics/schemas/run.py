"""Run-related Pydantic schemas."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RunCreate(BaseModel):
    """Schema for submitting an address."""

    address: str = Field(min_length=1)


class RunResponse(BaseModel):
    """A run record as the dashboard sees it."""

    id: str
    address: str
    status: str
    current_step: Optional[str] = None
    cancel_requested: bool = False
    imagery: Optional[Dict[str, Any]] = None
    analysis: Optional[Dict[str, Any]] = None
    pdf_url: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class RunStatus(RunResponse):
    """Run record plus the dashboard progress it maps to."""

    phase: str
    progress_percent: int
    is_terminal: bool


class RunList(BaseModel):
    runs: List[RunResponse]
