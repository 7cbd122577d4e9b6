from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from media_api.api import api_router
from media_api.cache import create_artifact_store
from media_api.config import settings
from media_api.errors import MediaError
from media_api.logging_config import setup_logging
from media_api.services.media import MediaService


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    setup_logging(settings.log_level)
    store = create_artifact_store(settings)
    await store.open()
    client = httpx.AsyncClient(follow_redirects=True)
    app.state.media_service = MediaService(settings, store, client)
    try:
        yield
    finally:
        await client.aclose()
        await store.close()


app = FastAPI(title=settings.app_name, lifespan=lifespan)


@app.exception_handler(MediaError)
async def media_error_handler(request: Request, exc: MediaError) -> PlainTextResponse:
    return PlainTextResponse(str(exc), status_code=exc.status_code)


# Registered before the catch-all media route.
@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok", "app": settings.app_name}


app.include_router(api_router)
