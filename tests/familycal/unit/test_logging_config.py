import logging

import pytest

from familycal.logging_config import configure_logging, get_logging_status

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _restore_levels(monkeypatch):
    monkeypatch.delenv("FAMILYCAL_DEBUG", raising=False)
    monkeypatch.delenv("FAMILYCAL_LOG_LEVEL", raising=False)
    names = ["", "familycal", "familycal.repository", "aiohttp.access", "asyncio"]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


def test_default_levels():
    configure_logging()

    status = get_logging_status()
    assert status["root"] == "INFO"
    assert status["familycal"] == "INFO"
    assert status["aiohttp.access"] == "WARNING"
    assert status["asyncio"] == "WARNING"


def test_debug_mode_only_raises_own_modules():
    configure_logging(debug_mode=True)

    assert logging.getLogger("familycal.repository").level == logging.DEBUG
    assert logging.getLogger("aiohttp.access").level == logging.WARNING


def test_env_debug_and_force_override(monkeypatch):
    monkeypatch.setenv("FAMILYCAL_DEBUG", "yes")

    configure_logging()
    assert get_logging_status()["familycal"] == "DEBUG"

    configure_logging(force_debug=False)
    assert get_logging_status()["familycal"] == "INFO"


def test_env_log_level_sets_root(monkeypatch):
    monkeypatch.setenv("FAMILYCAL_LOG_LEVEL", "warning")

    configure_logging(debug_mode=True)

    assert get_logging_status()["root"] == "WARNING"
    assert get_logging_status()["familycal"] == "DEBUG"
