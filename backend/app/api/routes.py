from fastapi import APIRouter

from app.api import contact, health, newsletter

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(contact.router)
api_router.include_router(newsletter.router)
