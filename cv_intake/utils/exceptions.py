"""
Exception hierarchy for the submission pipeline.

Every stage either returns a usable result or raises one of these.
The API layer maps them to HTTP responses through ``status_code``.
"""

from typing import Optional


class AgentError(Exception):
    """Base error raised by services, tagged with the component that failed."""

    status_code: int = 500
    error: str = "Internal error"

    def __init__(self, message: str, component: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.component = component
        # Pipeline stage that was not reached, set by SubmissionPipeline
        self.stage: Optional[str] = None

    def __str__(self) -> str:
        if self.component:
            return f"[{self.component}] {self.message}"
        return self.message


class ValidationError(AgentError):
    """Missing or invalid submission fields."""

    status_code = 400
    error = "Invalid submission"


class ExtractionError(AgentError):
    """Unsupported format, failed extraction job, or no usable text."""

    status_code = 422
    error = "Unprocessable document"


class ExtractionServiceError(AgentError):
    """The extraction backend is misconfigured or unreachable."""

    status_code = 500
    error = "Failed to extract text"


class StorageError(AgentError):
    status_code = 500
    error = "Failed to store file"


class StructuringError(AgentError):
    """The AI call itself failed (transport, auth, HTTP status)."""

    status_code = 500
    error = "Failed to structure CV"


class SinkError(AgentError):
    status_code = 500
    error = "Failed to record application"


class NotificationError(AgentError):
    status_code = 500
    error = "Failed to send notification"
