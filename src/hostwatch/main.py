"""ASGI Entrypoint"""

from hostwatch.app import create_app
from hostwatch.config import settings

app = create_app()
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "hostwatch.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )
