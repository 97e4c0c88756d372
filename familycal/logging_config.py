"""
Central logging configuration for familycal.

Quiets noisy third-party loggers while keeping familycal's own modules at the
requested verbosity.
"""

import logging
import os

FAMILYCAL_MODULES = [
    "familycal",
    "familycal.rrule_expander",
    "familycal.event_merger",
    "familycal.repository",
    "familycal.calendar_service",
    "familycal.subscriptions",
    "familycal.api.server",
]

THIRD_PARTY_LEVELS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "asyncio": logging.WARNING,
}


def configure_logging(debug_mode: bool = False, force_debug: bool | None = None) -> None:
    """
    Configure logging levels for familycal.

    Args:
        debug_mode: Whether to enable debug logging for familycal modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        FAMILYCAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        FAMILYCAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("FAMILYCAL_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("FAMILYCAL_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)
    logging.getLogger().setLevel(root_level)

    logger_config = dict(THIRD_PARTY_LEVELS)
    package_level = logging.DEBUG if final_debug else logging.INFO
    for module in FAMILYCAL_MODULES:
        logger_config[module] = package_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    logging.getLogger(__name__).debug(
        "Logging configured: root=%s familycal=%s",
        logging.getLevelName(root_level),
        logging.getLevelName(package_level),
    )


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["familycal", "aiohttp.access", "asyncio"]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
