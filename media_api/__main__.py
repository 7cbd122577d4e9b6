import uvicorn

from media_api.config import settings
from media_api.logging_config import setup_logging


def main() -> None:
    setup_logging(settings.log_level)
    uvicorn.run(
        "media_api.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
