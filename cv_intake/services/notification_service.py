"""
Notification Service

Applicant side effects after an application is recorded: the outbound
webhook with the structured CV, the confirmation email and the deferred
follow-up email. Failures raise NotificationError; nothing already
committed (stored file, sheet row) is undone.
"""

from datetime import datetime
from typing import Optional

import httpx

from cv_intake.config import Config
from cv_intake.schemas.cv import NotificationMetadata, NotificationPayload, StructuredCV
from cv_intake.services.email_service import EmailService
from cv_intake.services.follow_up_service import FollowUpScheduler
from cv_intake.utils.datetime_utils import format_iso_utc, get_now_utc
from cv_intake.utils.exceptions import NotificationError
from cv_intake.utils.logger import get_logger

logger = get_logger(__name__)


class NotificationService:
    """Webhook and email notifications for a processed application"""

    def __init__(
        self,
        config: Config,
        email_service: EmailService,
        follow_up_scheduler: FollowUpScheduler,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.email_service = email_service
        self.follow_up_scheduler = follow_up_scheduler
        self._transport = transport

    def build_payload(self, name: str, email: str, structured: StructuredCV) -> NotificationPayload:
        return NotificationPayload(
            cv_data=structured,
            metadata=NotificationMetadata(
                applicant_name=name,
                email=email,
                status=self.config.webhook.status,
                cv_processed=True,
                processed_timestamp=format_iso_utc(get_now_utc()),
            ),
        )

    async def notify(self, payload: NotificationPayload) -> bool:
        """
        POST the payload to the configured webhook once.

        Returns:
            True if delivered, False if no webhook URL is configured

        Raises:
            NotificationError: On transport failure or a non-2xx response
        """
        webhook = self.config.webhook
        if not webhook.url:
            logger.warning("[NotificationService] WEBHOOK_URL not configured - skipping webhook")
            return False

        headers = {"Content-Type": "application/json"}
        if webhook.candidate_email:
            headers["X-Candidate-Email"] = webhook.candidate_email

        try:
            async with httpx.AsyncClient(timeout=self.config.HTTP_TIMEOUT, transport=self._transport) as client:
                response = await client.post(
                    webhook.url,
                    headers=headers,
                    content=payload.model_dump_json(),
                )
        except httpx.HTTPError as e:
            logger.error(f"[NotificationService] Webhook request failed: {e}", exc_info=True)
            raise NotificationError(f"Failed to reach webhook: {str(e)}", "NotificationService") from e

        if not response.is_success:
            logger.error(
                f"[NotificationService] Webhook returned HTTP {response.status_code}: {response.text[:300]}"
            )
            raise NotificationError(
                f"Webhook returned HTTP {response.status_code}", "NotificationService"
            )

        logger.info(f"[NotificationService] ✅ Webhook delivered for {payload.metadata.email}")
        return True

    async def send_confirmation(self, to_email: str, name: str) -> bool:
        return await self.email_service.send_confirmation(to_email, name)

    async def schedule_follow_up(
        self,
        to_email: str,
        name: str,
        send_at: Optional[datetime] = None,
    ) -> datetime:
        return await self.follow_up_scheduler.schedule(to_email, name, send_at)
