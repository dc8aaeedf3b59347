"""
Main entry point for the salon booking service.
Runs the HTTP API and the reminder scheduler in one event loop.
"""

import asyncio
import sys

from aiohttp import web

from config import settings
from scheduler import setup_scheduler, shutdown_scheduler
from server import create_app
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="app.log")


async def main() -> None:
    """Start the API server and scheduler, then wait until cancelled."""
    # Validate configuration
    try:
        settings.validate_all_required()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    runner = web.AppRunner(create_app())
    scheduler_started = False

    try:
        logger.info("Starting salon booking service...")

        setup_scheduler()
        scheduler_started = True

        await runner.setup()
        site = web.TCPSite(runner, host=settings.host, port=settings.port)
        await site.start()
        logger.info(f"API server listening on {settings.host}:{settings.port}")

        await asyncio.Event().wait()

    except asyncio.CancelledError:
        logger.info("Service cancelled")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        raise
    finally:
        logger.info("Shutting down...")
        if scheduler_started:
            shutdown_scheduler()
        await runner.cleanup()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
