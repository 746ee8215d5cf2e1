r"""Core shared configuration and validation for sync and async
clients."""

from __future__ import annotations

__all__ = [
    "DEFAULT_HEADERS",
    "DEFAULT_TIMEOUT",
    "DEFAULT_TOKEN_EXPIRED_CODE",
    "SUCCESS_STATUS_RANGE",
    "ClientConfig",
    "validate_refresh_timeout",
    "validate_status_code",
    "validate_timeout",
]

from arefresh.core.config import (
    DEFAULT_HEADERS,
    DEFAULT_TIMEOUT,
    DEFAULT_TOKEN_EXPIRED_CODE,
    SUCCESS_STATUS_RANGE,
    ClientConfig,
)
from arefresh.core.validation import (
    validate_refresh_timeout,
    validate_status_code,
    validate_timeout,
)
