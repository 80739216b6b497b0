from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from cv_intake.schemas.submission import ErrorResponse, WebhookAck
from cv_intake.utils.logger import get_logger

logger = get_logger(__name__)

# Inbound callbacks from other systems
router = APIRouter(prefix="/api", tags=["Webhook"])


@router.post("/webhook", response_model=WebhookAck, responses={400: {"model": ErrorResponse}})
async def receive_webhook(request: Request):
    """Acknowledge any JSON body; the payload is only logged."""
    try:
        webhook_data = await request.json()
    except ValueError:
        logger.warning("[API] Webhook received a body that is not JSON")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(error="Invalid webhook payload", message="Request body must be JSON").model_dump(),
        )

    logger.info(f"[API] Webhook received: {webhook_data}")
    return WebhookAck(success=True)
