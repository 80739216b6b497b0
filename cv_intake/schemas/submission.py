"""
Submission, scheduling and webhook request/response schemas.
"""

from typing import List, Optional

from pydantic import BaseModel, EmailStr


class SubmitResponse(BaseModel):
    success: bool = True
    fileUrl: str
    fileUrls: List[str] = []


class ErrorResponse(BaseModel):
    error: str
    message: str


class ScheduleEmailRequest(BaseModel):
    email: EmailStr
    name: str
    scheduledTime: Optional[str] = None  # ISO datetime string; defaults to next business day


class ScheduleEmailResponse(BaseModel):
    success: bool = True
    scheduledTime: str
    strategy: str


class WebhookAck(BaseModel):
    success: bool = True


__all__ = [
    "SubmitResponse",
    "ErrorResponse",
    "ScheduleEmailRequest",
    "ScheduleEmailResponse",
    "WebhookAck",
]
