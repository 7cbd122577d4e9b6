from fastapi import APIRouter

from media_api.api import media

api_router = APIRouter()
api_router.include_router(media.router)

__all__ = ["api_router"]
