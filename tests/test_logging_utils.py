from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

from shutdown_registry import CleanupRegistry, ConfigError, RegistryOptions, load_config
from shutdown_registry.logging_utils import LOGGER_NAME, ColorFormatter, JsonFormatter, configure_logging, parse_level


@pytest.fixture(autouse=True)
def _reset_logger() -> Iterator[None]:
    logger = logging.getLogger(LOGGER_NAME)
    level = logger.level
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)


def test_configure_logging_installs_console_handler_only() -> None:
    logger = configure_logging({"console_level": "WARNING", "color": False})

    assert logger.name == LOGGER_NAME
    assert len(logger.handlers) == 1
    assert logger.handlers[0].level == logging.WARNING


def test_configure_logging_does_not_duplicate_handlers() -> None:
    configure_logging({})
    logger = configure_logging({})

    assert len(logger.handlers) == 1


def test_configure_logging_writes_plain_file(tmp_path: Path) -> None:
    logger = configure_logging({"log_dir": tmp_path / "logs", "file_level": "DEBUG"})

    logger.debug("draining %d item(s)", 3)
    for handler in logger.handlers:
        handler.flush()

    text = (tmp_path / "logs" / "shutdown_registry.log").read_text(encoding="utf-8")
    assert "[DEBUG] shutdown_registry: draining 3 item(s)" in text


def test_configure_logging_writes_json_lines(tmp_path: Path) -> None:
    logger = configure_logging({"log_dir": tmp_path, "json_logs": True})

    logger.info("finished with status %s", "success")
    for handler in logger.handlers:
        handler.flush()

    line = (tmp_path / "shutdown_registry.log").read_text(encoding="utf-8").strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["level"] == "INFO"
    assert payload["logger"] == LOGGER_NAME
    assert payload["message"] == "finished with status success"


def test_json_formatter_includes_exception() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.getLogger("x").makeRecord(
            "x", logging.ERROR, __file__, 1, "failed", (), exc_info=sys.exc_info()
        )

    payload = json.loads(JsonFormatter().format(record))

    assert "RuntimeError: boom" in payload["exception"]


def test_configure_logging_reads_logging_section_of_loaded_config(tmp_path: Path) -> None:
    config = load_config()
    config["logging"].update({"console_level": "ERROR", "log_dir": str(tmp_path), "file_level": "WARNING"})

    logger = configure_logging(config)

    assert [handler.level for handler in logger.handlers] == [logging.ERROR, logging.WARNING]
    assert logger.level == logging.WARNING


def test_json_lines_carry_drain_fields(tmp_path: Path) -> None:
    logger = configure_logging({"log_dir": tmp_path, "json_logs": True, "file_level": "DEBUG"})

    async def flaky() -> None:
        raise RuntimeError("disk busy")

    async def main() -> None:
        registry = CleanupRegistry(RegistryOptions(overall_timeout=0.05, retry_delay=0.05), logger=logger)
        registry.register(flaky, id="disk")
        await registry.trigger()

    asyncio.run(main())
    for handler in logger.handlers:
        handler.flush()

    payloads = [json.loads(line) for line in (tmp_path / "shutdown_registry.log").read_text(encoding="utf-8").splitlines()]
    failure = next(p for p in payloads if p["level"] == "WARNING" and "disk busy" in p["message"])
    assert failure["item_id"] == "disk"
    assert failure["attempt"] == 1
    finished = payloads[-1]
    assert finished["status"] == "timed-out"
    assert "item_id" not in finished


def test_color_formatter_picks_status_color_over_level() -> None:
    formatter = ColorFormatter("%(message)s", use_color=False)
    record = logging.getLogger("x").makeRecord("x", logging.INFO, __file__, 1, "done", (), None, extra={"status": "timed-out"})
    plain = logging.getLogger("x").makeRecord("x", logging.ERROR, __file__, 1, "boom", (), None)

    assert formatter.color_for(record) == ColorFormatter.STATUS_COLORS["timed-out"]
    assert formatter.color_for(plain) == ColorFormatter.LEVEL_COLORS["ERROR"]
    assert formatter.format(record) == "done"


@pytest.mark.parametrize(
    "value, expected",
    [("debug", logging.DEBUG), ("Warning", logging.WARNING), (logging.ERROR, logging.ERROR), (None, logging.INFO)],
)
def test_parse_level(value: object, expected: int) -> None:
    assert parse_level(value) == expected


@pytest.mark.parametrize("value", ["nonsense", True, 1.5])
def test_parse_level_rejects_unknown_values(value: object) -> None:
    with pytest.raises(ConfigError):
        parse_level(value, "console_level")


def test_configure_logging_rejects_bad_section() -> None:
    with pytest.raises(ConfigError) as excinfo:
        configure_logging({"logging": {"json_logs": "yes"}})

    assert excinfo.value.field == "json_logs"
