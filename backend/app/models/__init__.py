from app.db.base import Base  # noqa: F401
from app.models.subscriber import Subscriber  # noqa: F401

__all__ = [
    "Base",
    "Subscriber",
]
