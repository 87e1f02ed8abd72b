from __future__ import annotations

import json

from metacanvas import logger as package_logger
from metacanvas.logging import MAX_LOGGED_VALUE_LENGTH, bind_log_context, configure_logging, get_logger
from metacanvas.settings import Settings


def _last_json_record(err: str) -> dict:
    return json.loads(err.strip().splitlines()[-1])


def test_stdlib_logger_is_configured(capsys) -> None:
    configure_logging(settings=Settings(log_json=False, log_level="INFO"), force=True)
    logger = get_logger("tests")
    logger.info("hello")

    captured = capsys.readouterr()
    assert "hello" in captured.err.lower()


def test_json_logs_use_message_key(capsys) -> None:
    configure_logging(settings=Settings(log_json=True, log_level="INFO"), force=True)
    get_logger("tests").info("Schema loaded")

    record = _last_json_record(capsys.readouterr().err)
    assert record["message"] == "Schema loaded"
    assert record["app"] == "metacanvas"
    assert record["env"] == "dev"

    configure_logging(settings=Settings(log_json=False, log_level="INFO"), force=True)


def test_json_logs_carry_bound_context_and_shorten_long_values(capsys) -> None:
    configure_logging(settings=Settings(log_json=True, log_level="INFO", app_env="test"), force=True)

    with bind_log_context(batch=3, text_length=4000):
        get_logger("tests").info("No content type detected", extra={"answer": "x" * 1000})
    get_logger("tests").info("Canvas reset")

    lines = capsys.readouterr().err.strip().splitlines()
    inside, outside = json.loads(lines[-2]), json.loads(lines[-1])
    assert inside["batch"] == 3
    assert inside["env"] == "test"
    assert inside["extra"]["answer"].startswith("x" * MAX_LOGGED_VALUE_LENGTH + "...")
    assert inside["extra"]["answer"].endswith("(1000 chars)")
    assert "batch" not in outside

    configure_logging(settings=Settings(log_json=False, log_level="INFO"), force=True)


def test_package_logger_created_on_import() -> None:
    assert callable(getattr(package_logger, "info", None))
