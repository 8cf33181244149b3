import json
import logging
from pathlib import Path

import pytest
from base_connector.enums import LogLevelType
from base_connector.logger import ConnectorLogger, MetaFormatter, setup_logger


def test_setup_logger_plain(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "connector.log"
    logger = setup_logger("test-plain", LogLevelType.INFO, log_file=log_file)

    logger.debug("[TEST] Hidden")
    logger.info("[TEST] Visible", {"role": "Owner"})

    content = log_file.read_text(encoding="utf-8")
    assert "[TEST] Hidden" not in content
    assert "INFO test-plain [TEST] Visible {'role': 'Owner'}" in content


def test_setup_logger_json(tmp_path: Path) -> None:
    log_file = tmp_path / "connector.log"
    logger = setup_logger(
        "test-json", LogLevelType.DEBUG, json_logging=True, log_file=log_file
    )

    logger.warning("[TEST] Structured", {"count": 2})

    record = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
    assert record["message"] == "[TEST] Structured"
    assert record["levelname"] == "WARNING"
    assert record["name"] == "test-json"
    assert record["count"] == 2
    assert "meta" not in record


def test_setup_logger_replaces_handlers() -> None:
    setup_logger("test-handlers")
    logger = setup_logger("test-handlers", LogLevelType.ERROR)

    underlying = logging.getLogger("test-handlers")
    assert len(underlying.handlers) == 1
    assert underlying.level == logging.ERROR
    assert logger.name == "test-handlers"


@pytest.mark.parametrize("method", ["debug", "info", "warning", "error"])
def test_connector_logger_passes_meta(method: str) -> None:
    records: list[logging.LogRecord] = []

    class ListHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            records.append(record)

    underlying = logging.getLogger(f"test-meta-{method}")
    underlying.setLevel(logging.DEBUG)
    underlying.addHandler(ListHandler())

    getattr(ConnectorLogger(underlying), method)("message", {"key": "value"})

    assert records[0].getMessage() == "message"
    assert records[0].meta == {"key": "value"}


def test_meta_formatter_without_meta() -> None:
    record = logging.LogRecord("name", logging.INFO, __file__, 1, "message", None, None)
    assert MetaFormatter("%(message)s").format(record) == "message"


def test_meta_json_formatter_flattens_meta(
    capsys: pytest.CaptureFixture[str],
) -> None:
    logger = setup_logger("test-json-stdout", json_logging=True)

    logger.info("hello", {"role": "Owner", "scope": "/"})

    record = json.loads(capsys.readouterr().out.splitlines()[-1])
    assert record["message"] == "hello"
    assert record["role"] == "Owner"
    assert record["scope"] == "/"
