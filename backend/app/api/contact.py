import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.core import metrics
from app.core.config import Settings
from app.core.dependencies import get_app_settings, get_email_sender
from app.core.errors import NotificationFailure
from app.schemas.contact import ContactMessageRequest
from app.schemas.error import ErrorResponse
from app.schemas.newsletter import SuccessResponse
from app.services import contact as contact_service
from app.services.email import NotificationSender

logger = logging.getLogger(__name__)

router = APIRouter(tags=["contact"])


@router.post(
    "/send",
    response_model=SuccessResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def send_contact_message(
    payload: ContactMessageRequest,
    settings: Settings = Depends(get_app_settings),
    sender: NotificationSender = Depends(get_email_sender),
) -> SuccessResponse:
    try:
        await contact_service.send_contact_message(
            sender,
            settings,
            name=payload.name,
            email=payload.email,
            message=payload.message,
        )
    except NotificationFailure as exc:
        metrics.record_notification_failure()
        logger.error("Error sending contact email: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send message. Try again later.",
        ) from exc
    return SuccessResponse(success="Message sent successfully!")
