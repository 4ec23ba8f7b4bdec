import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status

from app.core import metrics
from app.core.dependencies import get_subscription_service, require_admin_key
from app.core.errors import AppError, NotificationFailure, StorageUnavailable
from app.schemas.error import ErrorResponse
from app.schemas.newsletter import (
    NewsletterEmailRequest,
    SubscriberListResponse,
    SubscriberRead,
    SuccessResponse,
)
from app.services.subscriptions import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["newsletter"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _internal_failure(exc: AppError, *, action: str, detail: str) -> HTTPException:
    if isinstance(exc, StorageUnavailable):
        metrics.record_storage_failure()
    logger.error("Error %s: %s", action, exc, exc_info=exc.__cause__ is not None)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


@router.post("/subscribe", response_model=SuccessResponse, responses=_ERROR_RESPONSES)
async def subscribe(
    payload: NewsletterEmailRequest,
    service: SubscriptionService = Depends(get_subscription_service),
) -> SuccessResponse:
    try:
        message = await service.subscribe(payload.email)
    except (StorageUnavailable, NotificationFailure) as exc:
        raise _internal_failure(
            exc, action="handling subscription", detail="Failed to subscribe. Try again later."
        ) from exc
    return SuccessResponse(success=message)


@router.post("/unsubscribe", response_model=SuccessResponse, responses=_ERROR_RESPONSES)
async def unsubscribe(
    payload: NewsletterEmailRequest,
    service: SubscriptionService = Depends(get_subscription_service),
) -> SuccessResponse:
    try:
        message = await service.unsubscribe(payload.email)
    except StorageUnavailable as exc:
        raise _internal_failure(exc, action="unsubscribing", detail="Failed to unsubscribe. Try again later.") from exc
    return SuccessResponse(success=message)


@router.get(
    "/admin/subscribers",
    response_model=SubscriberListResponse,
    responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def list_subscribers(
    x_api_key: str | None = Header(default=None),
    service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriberListResponse:
    try:
        records = await service.list_subscribers(x_api_key)
    except StorageUnavailable as exc:
        raise _internal_failure(exc, action="listing subscribers", detail="Failed to fetch subscribers") from exc
    return SubscriberListResponse(subscribers=[SubscriberRead.model_validate(record) for record in records])


@router.get("/admin/metrics", responses={401: {"model": ErrorResponse}})
async def metrics_snapshot(_: None = Depends(require_admin_key)) -> dict[str, int]:
    return metrics.snapshot()
