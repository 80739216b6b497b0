"""
Follow-up email sender.

Target of the one-time EventBridge Scheduler trigger registered by
``EventBridgeFollowUpScheduler``. Deploy ``handler`` as a Lambda function;
the event is the prepared message ``{email, subject, message}``.
"""

import asyncio
import json
from typing import Any, Dict

from cv_intake.config import get_config
from cv_intake.services.email_service import EmailService
from cv_intake.utils.exceptions import NotificationError
from cv_intake.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {"statusCode": status_code, "body": json.dumps(body)}


def handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    config = get_config()
    setup_logging(config)

    missing = [key for key in ("email", "subject", "message") if not event.get(key)]
    if missing:
        logger.error(f"[FollowUpHandler] Event missing field(s): {', '.join(missing)}")
        return _response(400, {"error": f"Missing field(s): {', '.join(missing)}"})

    email_service = EmailService(config)
    job = email_service.build_job(event["email"], event["subject"], event["message"])

    try:
        sent = asyncio.run(email_service.send_email(job))
    except NotificationError as e:
        return _response(500, {"error": "Failed to send email", "message": e.message})

    if not sent:
        return _response(503, {"error": "Email service not configured"})
    return _response(200, {"message": "Email sent successfully"})
