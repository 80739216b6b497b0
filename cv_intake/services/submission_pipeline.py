"""
Submission Pipeline

Turns one applicant submission into a stored, structured, recorded and
notified application:

    RECEIVED -> STORED -> TEXT_EXTRACTED -> STRUCTURED -> RECORDED -> NOTIFIED -> COMPLETED

Stages run strictly in sequence; only the upload of several attached files
runs concurrently. The first failing stage moves the submission to FAILED
and aborts the rest. Writes already committed stay committed.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from cv_intake.config import Config
from cv_intake.schemas.cv import StructuredCV
from cv_intake.services.extraction_service import LocalTextExtractor
from cv_intake.services.notification_service import NotificationService
from cv_intake.services.sheet_service import ApplicationRecord, SheetService
from cv_intake.services.storage_service import StorageService, StoredFile
from cv_intake.services.structuring_service import StructuringService
from cv_intake.utils.exceptions import AgentError, ValidationError
from cv_intake.utils.logger import get_logger

logger = get_logger(__name__)

_email_adapter = TypeAdapter(EmailStr)


class Stage(str, Enum):
    RECEIVED = "received"
    STORED = "stored"
    TEXT_EXTRACTED = "text_extracted"
    STRUCTURED = "structured"
    RECORDED = "recorded"
    NOTIFIED = "notified"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class UploadedFile:
    content: bytes
    filename: str
    content_type: Optional[str] = None


@dataclass
class Submission:
    name: str
    email: str
    phone: str
    files: List[UploadedFile] = field(default_factory=list)


@dataclass
class SubmissionState:
    """
    Progress of one submission.

    ``failed_stage`` is the stage that was being entered when the error
    happened, e.g. STORED for an upload failure.
    """
    stage: Stage = Stage.RECEIVED
    failed_stage: Optional[Stage] = None
    reason: Optional[str] = None
    history: List[Stage] = field(default_factory=lambda: [Stage.RECEIVED])

    def advance(self, stage: Stage) -> None:
        self.stage = stage
        self.history.append(stage)

    def fail(self, stage: Stage, reason: str) -> None:
        self.failed_stage = stage
        self.reason = reason
        self.advance(Stage.FAILED)


@dataclass
class SubmissionResult:
    stored_files: List[StoredFile]
    structured: StructuredCV
    record: ApplicationRecord
    state: SubmissionState

    @property
    def file_url(self) -> str:
        return self.stored_files[0].public_url

    @property
    def file_urls(self) -> List[str]:
        return [f.public_url for f in self.stored_files]


class SubmissionPipeline:
    """Sequences storage, extraction, structuring, recording and notification"""

    def __init__(
        self,
        config: Config,
        storage: StorageService,
        extractor: LocalTextExtractor,
        structurer: StructuringService,
        sheet: SheetService,
        notifier: NotificationService,
    ):
        self.config = config
        self.storage = storage
        self.extractor = extractor
        self.structurer = structurer
        self.sheet = sheet
        self.notifier = notifier

    def validate(self, submission: Submission) -> None:
        """
        Check required fields and every attached file before anything is stored.

        Raises:
            ValidationError: On a missing field, invalid email, or missing/invalid file
        """
        missing = [
            name for name in ("name", "email", "phone")
            if not (getattr(submission, name) or "").strip()
        ]
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}", "SubmissionPipeline")

        try:
            _email_adapter.validate_python(submission.email.strip())
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid email address: {submission.email}", "SubmissionPipeline") from e

        if not submission.files:
            raise ValidationError("No CV file provided", "SubmissionPipeline")

        for uploaded in submission.files:
            self.extractor.validate_file(uploaded.content, uploaded.filename, uploaded.content_type)

    async def process(self, submission: Submission) -> SubmissionResult:
        """
        Run the full pipeline for one submission.

        Returns:
            SubmissionResult with the stored file URLs, structured CV and sheet record

        Raises:
            AgentError: The stage-specific error of the first failing stage,
                with ``stage`` set to the stage that was not reached
        """
        state = SubmissionState()
        step = Stage.RECEIVED
        name = submission.name.strip()
        email = submission.email.strip()
        phone = submission.phone.strip()

        try:
            self.validate(submission)

            step = Stage.STORED
            stored_files = await self._store_all(submission.files)
            state.advance(Stage.STORED)
            primary_file, primary_stored = submission.files[0], stored_files[0]

            step = Stage.TEXT_EXTRACTED
            text = await self.extractor.extract(
                primary_file.content,
                primary_file.filename,
                primary_file.content_type,
                primary_stored,
            )
            state.advance(Stage.TEXT_EXTRACTED)

            step = Stage.STRUCTURED
            structured = await self.structurer.structure(text, primary_stored.public_url)
            state.advance(Stage.STRUCTURED)

            step = Stage.RECORDED
            record = ApplicationRecord.from_structured(name, email, phone, primary_stored.public_url, structured)
            await self.sheet.append(record)
            state.advance(Stage.RECORDED)

            step = Stage.NOTIFIED
            await self.notifier.notify(self.notifier.build_payload(name, email, structured))
            await self.notifier.send_confirmation(email, name)
            await self.notifier.schedule_follow_up(email, name)
            state.advance(Stage.NOTIFIED)

        except AgentError as e:
            state.fail(step, str(e))
            e.stage = step.value
            logger.error(f"[SubmissionPipeline] ❌ Submission from {email or '<no email>'} failed at {step.value}: {e}")
            raise
        except Exception as e:
            state.fail(step, str(e))
            logger.error(
                f"[SubmissionPipeline] ❌ Unexpected error at {step.value} for {email or '<no email>'}: {e}",
                exc_info=True,
            )
            raise

        state.advance(Stage.COMPLETED)
        logger.info(f"[SubmissionPipeline] ✅ Application from {email} completed ({len(stored_files)} file(s))")
        return SubmissionResult(
            stored_files=stored_files,
            structured=structured,
            record=record,
            state=state,
        )

    async def _store_all(self, files: List[UploadedFile]) -> List[StoredFile]:
        """Upload all files concurrently; results keep the input order"""
        return list(await asyncio.gather(
            *(self.storage.store(f.content, f.filename, f.content_type) for f in files)
        ))
