import io
import logging

import pytest

import dashboard_ingest.logging_setup as logging_setup


@pytest.fixture
def package_logger():
    pkg = logging.getLogger("dashboard_ingest")
    saved = (list(pkg.handlers), pkg.level, pkg.propagate)
    yield pkg
    pkg.handlers[:] = saved[0]
    pkg.setLevel(saved[1])
    pkg.propagate = saved[2]


def test_package_logger_is_silent_by_default(package_logger):
    assert any(isinstance(h, logging.NullHandler) for h in package_logger.handlers)


def test_get_logger_keeps_names_inside_the_package():
    assert logging_setup.get_logger("dashboard_ingest.api").name == "dashboard_ingest.api"
    assert logging_setup.get_logger("storage").name == "dashboard_ingest.storage"
    assert logging_setup.get_logger("dashboard_ingest").name == "dashboard_ingest"


@pytest.mark.parametrize(
    "value, expected",
    [("warning", logging.WARNING), (" debug ", logging.DEBUG), ("15", 15), (logging.ERROR, logging.ERROR)],
)
def test_resolve_level_accepts_names_and_numbers(value, expected):
    assert logging_setup.resolve_level(value) == expected


def test_resolve_level_reads_environment(monkeypatch):
    monkeypatch.setenv("DASHBOARD_INGEST_LOG_LEVEL", "error")
    assert logging_setup.resolve_level() == logging.ERROR
    monkeypatch.delenv("DASHBOARD_INGEST_LOG_LEVEL")
    assert logging_setup.resolve_level() == logging.INFO


def test_resolve_level_rejects_unknown_names():
    with pytest.raises(ValueError, match="verbose"):
        logging_setup.resolve_level("verbose")


def test_configure_logging_replaces_its_handler(package_logger, monkeypatch):
    monkeypatch.setenv("DASHBOARD_INGEST_LOG_LEVEL", "warning")
    first = io.StringIO()
    second = io.StringIO()
    logging_setup.configure_logging(stream=first)
    logging_setup.configure_logging(stream=second)

    log = logging_setup.get_logger("reconcile")
    log.info("reconcile:balanced current=1 target=1")
    log.warning("reconcile:correction amount=5")

    assert first.getvalue() == ""
    lines = second.getvalue().splitlines()
    assert len(lines) == 1
    assert lines[0].endswith("WARNING dashboard_ingest.reconcile: reconcile:correction amount=5")
    consoles = [h for h in package_logger.handlers if h.get_name() == "dashboard_ingest.console"]
    assert len(consoles) == 1
    assert package_logger.propagate is False
