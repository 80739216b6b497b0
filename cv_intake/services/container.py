"""
Service wiring.

Builds the pipeline collaborators explicitly from a Config. The API
resolves them through ``get_pipeline`` / ``get_notification_service``,
which tests replace via ``app.dependency_overrides``.
"""

from functools import lru_cache

from cv_intake.config import Config, get_config
from cv_intake.services.email_service import EmailService
from cv_intake.services.extraction_service import create_text_extractor
from cv_intake.services.follow_up_service import create_follow_up_scheduler
from cv_intake.services.notification_service import NotificationService
from cv_intake.services.sheet_service import SheetService
from cv_intake.services.storage_service import create_storage_service
from cv_intake.services.structuring_service import StructuringService
from cv_intake.services.submission_pipeline import SubmissionPipeline
from cv_intake.utils.exceptions import AgentError


def build_notification_service(config: Config) -> NotificationService:
    return NotificationService(
        config,
        email_service=EmailService(config),
        follow_up_scheduler=create_follow_up_scheduler(config),
    )


def build_pipeline(config: Config) -> SubmissionPipeline:
    """
    Raises:
        AgentError: If Textract extraction is selected without S3 storage
    """
    # Textract reads the stored object from the S3 bucket
    if config.extraction.backend == "textract" and config.storage.backend != "s3":
        raise AgentError(
            f"TEXT_EXTRACTOR=textract requires STORAGE_BACKEND=s3 (got '{config.storage.backend}')",
            "Container",
        )

    return SubmissionPipeline(
        config,
        storage=create_storage_service(config),
        extractor=create_text_extractor(config),
        structurer=StructuringService(config),
        sheet=SheetService(config),
        notifier=build_notification_service(config),
    )


@lru_cache(maxsize=1)
def get_pipeline() -> SubmissionPipeline:
    return build_pipeline(get_config())


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
    return build_notification_service(get_config())
