"""
Structured CV and notification payload schemas.
"""

from typing import Any, List

from pydantic import BaseModel, Field


class PersonalInfo(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    linkedin: str = ""


class StructuredCV(BaseModel):
    """AI-derived CV sections. Every field is present even when empty."""

    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    education: List[Any] = Field(default_factory=list)
    qualifications: List[Any] = Field(default_factory=list)
    projects: List[Any] = Field(default_factory=list)
    cv_public_link: str = ""


class NotificationMetadata(BaseModel):
    applicant_name: str
    email: str
    status: str
    cv_processed: bool = True
    processed_timestamp: str


class NotificationPayload(BaseModel):
    cv_data: StructuredCV
    metadata: NotificationMetadata


__all__ = [
    "PersonalInfo",
    "StructuredCV",
    "NotificationMetadata",
    "NotificationPayload",
]
