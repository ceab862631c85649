"""Start the risk engine API with uvicorn."""

import uvicorn

from config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.api_workers,
        log_level="debug" if settings.debug else "info",
        access_log=False
    )
