import uvicorn

from invite_service.core.config import get_settings


def run() -> None:
    settings = get_settings()
    # uvicorn installs its own SIGINT/SIGTERM handling for a graceful shutdown
    uvicorn.run(
        "invite_service.main:app",
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
