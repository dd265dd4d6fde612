import asyncio
import logging
import socket
from logging.handlers import RotatingFileHandler
from pathlib import Path

import uvicorn

from .api import create_app
from .bot import AfkCoordinator
from .config import Settings, load_environment, validate_settings
from .i18n import LocalizationError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure logging with both console and file output."""
    logs_dir = Path("logs")
    logs_dir.mkdir(exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(console_handler)

    # Rotating file, 10MB per file, 5 backups
    try:
        file_handler = RotatingFileHandler(
            logs_dir / "afkguard.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
    except OSError as e:
        logger.warning("Failed to set up file logging: %s", e)
    else:
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root_logger.addHandler(file_handler)
        logger.info("Logging to file: %s", logs_dir / "afkguard.log")

    logging.getLogger("discord").setLevel(logging.WARNING)
    logging.getLogger("discord.http").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _is_port_in_use(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            return False
        except OSError:
            return True


async def run_api(coordinator: AfkCoordinator, settings: Settings) -> None:
    """Serve the status API; the bot keeps running if the server cannot start."""
    if _is_port_in_use(settings.api_host, settings.api_port):
        logger.error(
            "Port %s is already in use; status API disabled. Change API_PORT or set API_ENABLED=false.",
            settings.api_port,
        )
        return

    config = uvicorn.Config(
        app=create_app(coordinator, settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level="info",
        loop="asyncio",
    )
    server = uvicorn.Server(config)
    try:
        await server.serve()
    except SystemExit as e:
        if e.code != 0:
            logger.error("Status API failed to start (exit code %s)", e.code)
    except OSError as e:
        logger.error("Status API failed to bind to %s:%s: %s", settings.api_host, settings.api_port, e)


async def main_async() -> None:
    load_environment()
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    try:
        validate_settings(settings)
        logger.info("Configuration validation passed")
    except RuntimeError:
        logger.error("Configuration validation failed. Please fix the errors and try again.")
        raise

    try:
        coordinator = AfkCoordinator(settings)
    except LocalizationError:
        logger.exception("Could not load translation bundles")
        raise

    api_task = None
    if settings.api_enabled:
        api_task = asyncio.create_task(run_api(coordinator, settings), name="uvicorn-server")

    try:
        await coordinator.start_discord()
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("Fatal error in Discord bot")
        raise
    finally:
        try:
            await coordinator.shutdown()
        except Exception as e:
            logger.warning("Error during coordinator shutdown: %s", e)

        if api_task is not None and not api_task.done():
            api_task.cancel()
            try:
                await asyncio.wait_for(asyncio.gather(api_task, return_exceptions=True), timeout=10.0)
            except asyncio.TimeoutError:
                logger.warning("Shutdown timeout, status API may not have stopped cleanly")


def main() -> None:
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        logging.info("Interrupted, shutting down cleanly.")


if __name__ == "__main__":
    main()
