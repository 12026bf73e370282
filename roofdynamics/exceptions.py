"""Exception classes for the analysis pipeline."""

from typing import Optional


class PipelineError(Exception):
    """Base class for errors that end a run."""
    pass


class ConfigurationError(PipelineError):
    """Raised when a required credential or setting is missing."""
    pass


class UpstreamError(PipelineError):
    """Raised when the inference API or artifact storage answers with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ContractViolationError(PipelineError):
    """Raised when the inference API response does not match the expected JSON shape."""
    pass


class PreconditionError(PipelineError):
    """Raised when a stage runs without the data an earlier stage should have written."""
    pass


class StageError(PipelineError):
    """Raised by a stage client when a stage invocation fails."""
    pass


class RunNotFoundError(Exception):
    """Raised when a run id does not exist."""
    pass


class RunStateError(Exception):
    """Raised on an illegal status transition or a write to a terminal run."""
    pass
