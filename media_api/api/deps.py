from fastapi import Request

from media_api.services.media import MediaService


def get_media_service(request: Request) -> MediaService:
    return request.app.state.media_service
