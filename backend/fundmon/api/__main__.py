"""Run the API server: python -m fundmon.api"""
import uvicorn

from fundmon.core.config import settings


def main() -> None:
    uvicorn.run(
        "fundmon.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
