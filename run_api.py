"""
Web API runner

Loads .env, then starts the FastAPI server with uvicorn.
"""
import logging
import signal
import sys

import uvicorn
from dotenv import load_dotenv

# Load .env file before settings are read
load_dotenv()

from taskmanager.config.settings import settings  # noqa: E402

logger = logging.getLogger("taskmanager.runner")


def signal_handler(signum, frame):
    """Handle termination signals."""
    logger.info("Received signal %s, shutting down...", signum)
    sys.exit(0)


def main():
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    logger.info("Starting Task Manager API on port %s", settings.api.port)
    logger.info("Store backend: %s", settings.store.backend)
    logger.info("Database: %s", settings.database.path)

    uvicorn.run(
        "taskmanager.api.app:app",
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.log.level.lower(),
    )


if __name__ == "__main__":
    main()
