from __future__ import annotations

import hmac
import logging
import re

from app.core import metrics
from app.core.config import Settings
from app.core.errors import ConflictError, NotificationFailure, StorageUnavailable, UnauthorizedError, ValidationError
from app.core.logging_config import mask_email
from app.services import email as email_service
from app.services.subscriber_store import SubscriberRecord, SubscriberStore

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SUBSCRIBED_MESSAGE = "Thank you for subscribing!"
UNSUBSCRIBED_MESSAGE = "You have been unsubscribed successfully."


def normalize_email(raw: object) -> str:
    if not isinstance(raw, str):
        return ""
    return raw.strip().lower()


class SubscriptionService:
    """Business rules for the mailing list: validation, duplicate rejection, idempotent removal."""

    def __init__(
        self,
        store: SubscriberStore,
        sender: email_service.NotificationSender,
        settings: Settings,
    ) -> None:
        self.store = store
        self.sender = sender
        self.settings = settings

    async def subscribe(self, raw_email: object) -> str:
        email = normalize_email(raw_email)
        if not email:
            raise ValidationError("A valid email is required", code="required")
        if not EMAIL_RE.match(email):
            raise ValidationError("Please provide a valid email format", code="format")

        if await self.store.exists(email):
            metrics.record_duplicate_subscription()
            raise ConflictError("Email already subscribed", code="already-subscribed")

        await self.store.add(email)
        metrics.record_subscription()
        logger.info("Subscribed %s", mask_email(email))

        try:
            await email_service.send_subscription_confirmation(self.sender, self.settings, email)
        except NotificationFailure:
            metrics.record_notification_failure()
            if not self.settings.subscribe_require_confirmation:
                logger.warning("Confirmation email to %s failed; keeping subscription", mask_email(email))
                return SUBSCRIBED_MESSAGE
            logger.error("Confirmation email to %s failed; rolling back subscription", mask_email(email))
            try:
                await self.store.remove(email)
            except StorageUnavailable:
                logger.error("Rollback of %s failed; subscription left in place", mask_email(email))
            raise
        return SUBSCRIBED_MESSAGE

    async def unsubscribe(self, raw_email: object) -> str:
        email = normalize_email(raw_email)
        if not email:
            raise ValidationError("A valid email is required", code="required")
        removed = await self.store.remove(email)
        if removed:
            metrics.record_unsubscription()
        logger.info("Unsubscribe for %s (removed=%s)", mask_email(email), removed)
        return UNSUBSCRIBED_MESSAGE

    def authorize(self, credential: str | None) -> None:
        expected = self.settings.admin_api_key or ""
        provided = credential or ""
        if not expected or not hmac.compare_digest(provided.encode(), expected.encode()):
            raise UnauthorizedError("Unauthorized")

    async def list_subscribers(self, credential: str | None) -> list[SubscriberRecord]:
        self.authorize(credential)
        return await self.store.list()
