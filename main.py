import uvicorn
from climblog.main import app
from config.logging_config import build_logging_config
from config.settings import get_settings

__all__ = ["app"]


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.app_host,
        port=settings.app_port,
        log_config=build_logging_config(settings.log_level),
    )
