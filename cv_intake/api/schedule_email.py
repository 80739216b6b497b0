from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from cv_intake.schemas.submission import ErrorResponse, ScheduleEmailRequest, ScheduleEmailResponse
from cv_intake.services.container import get_notification_service
from cv_intake.services.notification_service import NotificationService
from cv_intake.utils.datetime_utils import format_iso_utc, get_now_utc, parse_datetime_safe, resolve_timezone
from cv_intake.utils.exceptions import AgentError, NotificationError, ValidationError
from cv_intake.utils.logger import get_logger

logger = get_logger(__name__)

# Deferred follow-up email endpoint
router = APIRouter(prefix="/api", tags=["Email"])


def _parse_request(raw) -> ScheduleEmailRequest:
    try:
        body = ScheduleEmailRequest.model_validate(raw)
    except PydanticValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ValidationError(f"Invalid or missing field(s): {fields}", "ScheduleEmail") from e

    if not body.name.strip():
        raise ValidationError("Missing required field: name", "ScheduleEmail")
    return body


def _resolve_send_time(body: ScheduleEmailRequest, notifier: NotificationService) -> datetime:
    try:
        tz = resolve_timezone(notifier.config.follow_up.timezone)
    except ValueError as e:
        raise NotificationError(f"Invalid FOLLOW_UP_TIMEZONE: {e}", "ScheduleEmail") from e

    if not body.scheduledTime:
        return notifier.follow_up_scheduler.default_send_time()

    try:
        send_at = parse_datetime_safe(body.scheduledTime, tz)
    except ValueError as e:
        raise ValidationError(str(e), "ScheduleEmail") from e

    if send_at <= get_now_utc():
        raise ValidationError("scheduledTime must be in the future", "ScheduleEmail")
    return send_at


@router.post(
    "/schedule-email",
    response_model=ScheduleEmailResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def schedule_email(
    request: Request,
    notifier: NotificationService = Depends(get_notification_service),
):
    """
    Register a deferred follow-up email.

    Body: ``{email, name, scheduledTime?}``. Without ``scheduledTime`` the
    email goes out on the next business day at the configured hour.
    """
    try:
        try:
            raw = await request.json()
        except ValueError as e:
            raise ValidationError("Request body must be JSON", "ScheduleEmail") from e

        body = _parse_request(raw)
        send_at = _resolve_send_time(body, notifier)
        scheduled = await notifier.schedule_follow_up(body.email, body.name.strip(), send_at)

        return ScheduleEmailResponse(
            success=True,
            scheduledTime=format_iso_utc(scheduled),
            strategy=notifier.follow_up_scheduler.strategy,
        )

    except AgentError:
        raise
    except Exception as e:
        logger.error(f"[API] Failed to schedule email: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Failed to schedule follow-up email", message=str(e)).model_dump(),
        )
