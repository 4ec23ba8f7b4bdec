from __future__ import annotations

import logging

from app.core import metrics
from app.core.config import Settings
from app.core.errors import ValidationError
from app.core.logging_config import mask_email
from app.services import email as email_service

logger = logging.getLogger(__name__)


async def send_contact_message(
    sender: email_service.NotificationSender,
    settings: Settings,
    *,
    name: str | None,
    email: str | None,
    message: str | None,
) -> bool:
    """Forward a contact-form submission to the support mailbox."""
    name = (name or "").strip()
    email = (email or "").strip()
    message = (message or "").strip()
    if not name or not email or not message:
        raise ValidationError("All fields are required", code="required")

    delivered = await email_service.send_contact_notification(
        sender, settings, name=name, email=email, message=message
    )
    if not delivered:
        logger.warning("Email delivery is disabled; contact message from %s was not forwarded", mask_email(email))
        return False
    metrics.record_contact_message()
    logger.info("Contact message from %s forwarded", mask_email(email))
    return delivered
