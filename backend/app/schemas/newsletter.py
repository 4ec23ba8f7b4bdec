from datetime import datetime

from pydantic import BaseModel, ConfigDict


class NewsletterEmailRequest(BaseModel):
    email: str | None = None


class SuccessResponse(BaseModel):
    success: str


class SubscriberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    email: str
    created_at: datetime | None = None


class SubscriberListResponse(BaseModel):
    subscribers: list[SubscriberRead]
