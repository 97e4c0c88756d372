"""aiohttp server wiring for familycal."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Optional

from aiohttp import web

from familycal.api.routes import error_middleware, register_api_routes
from familycal.calendar_service import CalendarService
from familycal.config_loader import Config
from familycal.repository import JsonTemplateRepository
from familycal.rrule_expander import OccurrenceExpander

logger = logging.getLogger(__name__)


def build_service(config: Config) -> CalendarService:
    """Build a calendar service backed by the configured JSON store."""
    repository = JsonTemplateRepository(config.data_path)
    expander = OccurrenceExpander(config)
    return CalendarService(repository, expander, upcoming_limit=config.upcoming_limit)


def make_app(service: CalendarService) -> web.Application:
    """Create the aiohttp application with the event API registered."""
    app = web.Application(middlewares=[error_middleware])
    register_api_routes(app, service)

    async def _shutdown(_app: web.Application) -> None:
        logger.info("Application shutdown requested")

    app.on_shutdown.append(_shutdown)
    return app


async def serve(config: Config, stop_event: Optional[asyncio.Event] = None) -> None:
    """Run the HTTP server until stop_event is set or SIGINT/SIGTERM arrives."""
    service = build_service(config)
    app = make_app(service)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=config.server_bind, port=config.server_port)
    try:
        await site.start()
    except OSError:
        logger.exception("Failed to start server on %s:%d", config.server_bind, config.server_port)
        await runner.cleanup()
        raise

    logger.info(
        "familycal serving %s on http://%s:%d",
        config.data_path,
        config.server_bind,
        config.server_port,
    )

    stop = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Signal handlers are unavailable off the main thread and on Windows
            logger.debug("Could not install handler for %s", sig)

    try:
        await stop.wait()
    finally:
        logger.info("Stopping server")
        await runner.cleanup()


def start_server(config: Config) -> None:
    """Blocking entry point used by the CLI."""
    asyncio.run(serve(config))
