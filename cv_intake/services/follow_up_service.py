"""
Follow-up Email Scheduling

Defers the "application under review" email to the next business day.

Strategies (FOLLOW_UP_STRATEGY):
- provider: hand the message to an HTTP email API with a future
  ``scheduled_at`` so the provider defers delivery.
- eventbridge: register a one-time EventBridge Scheduler trigger whose
  target (see ``cv_intake.follow_up_handler``) sends the prepared message.
- none: scheduling disabled.
"""

import asyncio
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import boto3
import httpx

from cv_intake.config import Config
from cv_intake.services.email_service import EmailJob, follow_up_body
from cv_intake.utils.datetime_utils import next_business_day
from cv_intake.utils.exceptions import NotificationError
from cv_intake.utils.logger import get_logger

logger = get_logger(__name__)


class FollowUpScheduler:
    """Base scheduler: works out the send time and prepares the message"""

    strategy = "none"

    def __init__(self, config: Config):
        self.config = config

    def default_send_time(self, now: Optional[datetime] = None) -> datetime:
        follow_up = self.config.follow_up
        return next_business_day(now, hour=follow_up.hour, tz=follow_up.timezone)

    def build_job(self, to_email: str, name: str, send_at: datetime) -> EmailJob:
        return EmailJob(
            to=to_email,
            from_=self.sender or "",
            subject=self.config.follow_up.subject,
            body=follow_up_body(name),
            send_at=send_at,
        )

    @property
    def sender(self) -> Optional[str]:
        return self.config.email_api.from_email or self.config.smtp.from_email

    async def schedule(self, to_email: str, name: str, send_at: Optional[datetime] = None) -> datetime:
        """
        Register a deferred follow-up email.

        Returns:
            The UTC send time that was registered

        Raises:
            NotificationError: If the scheduling backend rejects the request
        """
        send_at = (send_at or self.default_send_time()).astimezone(timezone.utc)
        job = self.build_job(to_email, name, send_at)
        await self._register(job)
        return send_at

    async def _register(self, job: EmailJob) -> None:
        logger.info(f"[FollowUpScheduler] Follow-up emails disabled - not scheduling for {job.to}")


class ProviderFollowUpScheduler(FollowUpScheduler):
    """Provider-side deferral through a Resend-compatible email API"""

    strategy = "provider"

    def __init__(self, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(config)
        self._transport = transport

    async def _register(self, job: EmailJob) -> None:
        api = self.config.email_api
        if not api.api_key or not job.from_:
            raise NotificationError(
                "EMAIL_API_KEY and EMAIL_FROM must be set for provider-scheduled emails",
                "FollowUpScheduler",
            )

        payload = {
            "from": job.from_,
            "to": [job.to],
            "subject": job.subject,
            "text": job.body,
            "scheduled_at": job.send_at.isoformat(),
        }

        try:
            async with httpx.AsyncClient(timeout=self.config.HTTP_TIMEOUT, transport=self._transport) as client:
                response = await client.post(
                    f"{api.base_url}/emails",
                    headers={"Authorization": f"Bearer {api.api_key}"},
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error(f"[FollowUpScheduler] Email API request failed: {e}", exc_info=True)
            raise NotificationError(f"Failed to reach email API: {str(e)}", "FollowUpScheduler") from e

        if not response.is_success:
            logger.error(f"[FollowUpScheduler] Email API returned HTTP {response.status_code}: {response.text[:300]}")
            raise NotificationError(
                f"Email API returned HTTP {response.status_code}", "FollowUpScheduler"
            )

        logger.info(f"[FollowUpScheduler] ✅ Follow-up for {job.to} scheduled at {job.send_at.isoformat()}")


class EventBridgeFollowUpScheduler(FollowUpScheduler):
    """One-time EventBridge Scheduler trigger targeting the follow-up sender"""

    strategy = "eventbridge"

    def __init__(self, config: Config, client: Optional[Any] = None):
        super().__init__(config)
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            aws = self.config.s3
            self._client = boto3.client(
                "scheduler",
                region_name=aws.region,
                aws_access_key_id=aws.access_key_id,
                aws_secret_access_key=aws.secret_access_key,
            )
        return self._client

    async def _register(self, job: EmailJob) -> None:
        follow_up = self.config.follow_up
        if not follow_up.scheduler_target_arn or not follow_up.scheduler_role_arn:
            raise NotificationError(
                "SCHEDULER_TARGET_ARN and SCHEDULER_ROLE_ARN must be set for EventBridge scheduling",
                "FollowUpScheduler",
            )

        name = f"follow-up-email-{uuid.uuid4().hex}"
        target_input = {
            "email": job.to,
            "subject": job.subject,
            "message": job.body,
        }

        try:
            await asyncio.to_thread(
                self.client.create_schedule,
                Name=name,
                GroupName=follow_up.scheduler_group,
                ScheduleExpression=f"at({job.send_at.strftime('%Y-%m-%dT%H:%M:%S')})",
                ScheduleExpressionTimezone="UTC",
                FlexibleTimeWindow={"Mode": "OFF"},
                ActionAfterCompletion="DELETE",
                Target={
                    "Arn": follow_up.scheduler_target_arn,
                    "RoleArn": follow_up.scheduler_role_arn,
                    "Input": json.dumps(target_input),
                },
            )
        except Exception as e:
            logger.error(f"[FollowUpScheduler] Failed to create schedule {name}: {e}", exc_info=True)
            raise NotificationError(f"Failed to schedule follow-up email: {str(e)}", "FollowUpScheduler") from e

        logger.info(f"[FollowUpScheduler] ✅ Schedule {name} created for {job.to} at {job.send_at.isoformat()}")


def create_follow_up_scheduler(config: Config) -> FollowUpScheduler:
    strategy = config.follow_up.strategy
    if strategy == "provider":
        return ProviderFollowUpScheduler(config)
    if strategy == "eventbridge":
        return EventBridgeFollowUpScheduler(config)
    if strategy == "none":
        return FollowUpScheduler(config)
    raise NotificationError(f"Unknown FOLLOW_UP_STRATEGY '{strategy}'", "FollowUpScheduler")
