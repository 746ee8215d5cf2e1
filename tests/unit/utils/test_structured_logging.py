from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from arefresh.coordinator import RefreshCoordinator
from arefresh.credentials import CredentialStore
from arefresh.utils.structured_logging import StructuredFormatter, log_structured


@pytest.fixture
def stream_logger() -> tuple[logging.Logger, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    logger = logging.getLogger("arefresh.tests.structured")
    logger.handlers = [handler]
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return logger, stream


##############################################
#     Tests for StructuredFormatter          #
##############################################


def test_structured_formatter_basic_log(stream_logger: tuple[logging.Logger, StringIO]) -> None:
    """Test that StructuredFormatter produces valid JSON."""
    logger, stream = stream_logger
    logger.info("Token refreshed")
    data = json.loads(stream.getvalue())
    assert data["level"] == "INFO"
    assert data["logger"] == "arefresh.tests.structured"
    assert data["message"] == "Token refreshed"
    assert data["function"] == "test_structured_formatter_basic_log"
    assert data["timestamp"].endswith("Z")


def test_structured_formatter_extra_fields(
    stream_logger: tuple[logging.Logger, StringIO],
) -> None:
    logger, stream = stream_logger
    logger.debug("Waiting", extra={"refresh_cycle": 2, "refresh_role": "follower"})
    data = json.loads(stream.getvalue())
    assert data["refresh_cycle"] == 2
    assert data["refresh_role"] == "follower"


def test_structured_formatter_non_serializable_extra(
    stream_logger: tuple[logging.Logger, StringIO],
) -> None:
    logger, stream = stream_logger
    logger.info("Failed", extra={"error": ValueError("boom")})
    data = json.loads(stream.getvalue())
    assert data["error"] == "ValueError('boom')"


def test_structured_formatter_exception(stream_logger: tuple[logging.Logger, StringIO]) -> None:
    logger, stream = stream_logger
    try:
        msg = "boom"
        raise RuntimeError(msg)
    except RuntimeError:
        logger.exception("Refresh crashed")
    data = json.loads(stream.getvalue())
    assert "RuntimeError: boom" in data["exception"]


#####################################
#     Tests for log_structured      #
#####################################


def test_log_structured(stream_logger: tuple[logging.Logger, StringIO]) -> None:
    logger, stream = stream_logger
    log_structured(logger, logging.WARNING, "Token refresh failed", refresh_cycle=1)
    data = json.loads(stream.getvalue())
    assert data["level"] == "WARNING"
    assert data["refresh_cycle"] == 1


def test_coordinator_log_records_carry_cycle(caplog: pytest.LogCaptureFixture) -> None:
    coordinator = RefreshCoordinator(CredentialStore(), lambda: {"Authorization": "Bearer NEW"})
    with caplog.at_level(logging.DEBUG, logger="arefresh.coordinator"):
        coordinator.ensure_fresh_token()
    records = [record for record in caplog.records if record.name == "arefresh.coordinator"]
    assert records
    assert all(record.refresh_cycle == 1 for record in records)
    assert records[0].refresh_role == "leader"


def test_coordinator_logs_failure_as_warning(caplog: pytest.LogCaptureFixture) -> None:
    def refresh() -> dict[str, str]:
        msg = "auth server unreachable"
        raise ConnectionError(msg)

    coordinator = RefreshCoordinator(CredentialStore(), refresh)
    with caplog.at_level(logging.DEBUG, logger="arefresh.coordinator"):
        coordinator.ensure_fresh_token()
    assert "Token refresh failed (cycle 1, 0 waiting): ConnectionError: auth server unreachable" in (
        caplog.text
    )
