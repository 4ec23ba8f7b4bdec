from pydantic import BaseModel, Field


class ContactMessageRequest(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    message: str | None = Field(default=None, max_length=10_000)
