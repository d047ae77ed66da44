from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from dimensions.lib.logging import ConsoleFormatter, JSONFormatter, JobLogger, get_job_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def _record(msg: str = "hello", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("dimensions.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_basic_fields() -> None:
    data = json.loads(JSONFormatter().format(_record()))

    assert data["level"] == "INFO"
    assert data["logger"] == "dimensions.test"
    assert data["message"] == "hello"
    assert data["timestamp"].endswith("Z")
    assert "extra" not in data


def test_json_formatter_lifts_job_context() -> None:
    record = _record(job="addresses_hist", entity="addresses", as_of="2025-01-01T02:00:00")

    data = json.loads(JSONFormatter().format(record))

    assert (data["job"], data["entity"], data["as_of"]) == ("addresses_hist", "addresses", "2025-01-01T02:00:00")
    assert "extra" not in data


def test_json_formatter_extra_and_exclusions() -> None:
    formatter = JSONFormatter(exclude_fields=["secret"])

    data = json.loads(formatter.format(_record(job="addresses_hist", source_rows=40, secret="x")))

    assert data["job"] == "addresses_hist"
    assert data["extra"] == {"source_rows": 40}


def test_json_formatter_nests_metric() -> None:
    record = _record("METRIC inserts=12", metric_name="inserts", metric_value=12, metric_unit="rows")

    data = json.loads(JSONFormatter().format(record))

    assert data["metric"] == {"name": "inserts", "value": 12, "unit": "rows"}
    assert "extra" not in data


def test_console_formatter_prefixes_context() -> None:
    formatter = ConsoleFormatter()

    line = formatter.format(_record("Planned 3 inserts", job="addresses_hist", entity="addresses"))
    plain = formatter.format(_record("no context"))

    assert line.endswith("dimensions.test: [addresses_hist.addresses] Planned 3 inserts")
    assert plain.endswith("dimensions.test: no context")


def test_setup_logging_writes_json_file(tmp_path: Path) -> None:
    """JSON output goes to the console and to the optional log file."""
    log_path = tmp_path / "run.log"
    setup_logging(json_format=True, log_file=str(log_path))

    logging.getLogger("dimensions.test").info("written to file")
    for handler in logging.getLogger().handlers:
        handler.flush()

    records = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert any(r["message"] == "written to file" for r in records)
    assert all(isinstance(h.formatter, JSONFormatter) for h in logging.getLogger().handlers)


def test_setup_logging_levels() -> None:
    setup_logging(level="warning")
    assert logging.getLogger().level == logging.WARNING

    setup_logging(verbose=True, level="warning")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging(level="nonsense")
    assert logging.getLogger().level == logging.INFO


def test_job_logger_stamps_context(caplog: pytest.LogCaptureFixture) -> None:
    job_logger = get_job_logger("dimensions.test", job="addresses_hist")
    job_logger.set_context(entity="addresses")

    with caplog.at_level(logging.INFO, logger="dimensions.test"):
        job_logger.info("Planned %d inserts", 3)

    record = caplog.records[-1]
    assert record.getMessage() == "Planned 3 inserts"
    assert record.job == "addresses_hist"
    assert record.entity == "addresses"


def test_job_logger_clear_context() -> None:
    job_logger = JobLogger("dimensions.test")
    job_logger.set_context(job="x")

    job_logger.clear_context()

    assert job_logger.context == {}


def test_metric_record(caplog: pytest.LogCaptureFixture) -> None:
    job_logger = get_job_logger("dimensions.test", job="addresses_hist")

    with caplog.at_level(logging.INFO, logger="dimensions.test"):
        job_logger.metric("inserts", 12, unit="rows", phase="commit")

    record = caplog.records[-1]
    assert record.getMessage() == "METRIC inserts=12"
    assert record.metric_value == 12
    assert record.metric_unit == "rows"
    assert record.phase == "commit"


def test_call_extra_overrides_context(caplog: pytest.LogCaptureFixture) -> None:
    job_logger = get_job_logger("dimensions.test", job="addresses_hist", entity="addresses")

    with caplog.at_level(logging.INFO, logger="dimensions.test"):
        job_logger.info("Reclassified", extra={"entity": "customers"})

    assert caplog.records[-1].entity == "customers"
    assert job_logger.context["entity"] == "addresses"
