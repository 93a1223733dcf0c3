"""
Process entrypoint: `band-registry` console script or `python api/run.py`.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from core import settings
from core.db import DatabaseConnection
from core.lifecycle import LifecycleController
from core.listener import HttpListener
from core.logging_config import setup_logging
from main import create_app

logger = logging.getLogger(__name__)


def build_controller() -> LifecycleController:
    database = DatabaseConnection()
    app = create_app(database)
    host = settings.http_host()
    port = settings.http_port()
    level = settings.log_level()

    return LifecycleController(
        database=database,
        listener_factory=lambda: HttpListener(app, host=host, port=port, log_level=level),
        port=port,
        grace_s=settings.shutdown_grace_s(),
        shutdown_timeout_s=settings.shutdown_timeout_s(),
    )


def main() -> None:
    settings.load_env_file()
    setup_logging(settings.log_level())

    controller = build_controller()
    controller.observe_exit()
    try:
        exit_code = asyncio.run(controller.run())
    except Exception as exc:
        logger.error("Uncaught exception: %s", exc, exc_info=True)
        # The exit observer reports controller.exit_code.
        controller.exit_code = exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
