from fastapi import Depends, Header, Request

from app.core.config import Settings
from app.services.email import NotificationSender
from app.services.subscriptions import SubscriptionService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_email_sender(request: Request) -> NotificationSender:
    return request.app.state.email_sender


def get_subscription_service(request: Request) -> SubscriptionService:
    return request.app.state.subscription_service


async def require_admin_key(
    x_api_key: str | None = Header(default=None),
    service: SubscriptionService = Depends(get_subscription_service),
) -> None:
    service.authorize(x_api_key)
