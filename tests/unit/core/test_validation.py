from __future__ import annotations

import httpx
import pytest

from arefresh.core.validation import (
    validate_refresh_timeout,
    validate_status_code,
    validate_timeout,
)

######################################
#     Tests for validate_timeout     #
######################################


@pytest.mark.parametrize("timeout", [0.1, 1, 60.0, httpx.Timeout(5.0)])
def test_validate_timeout_valid(timeout: float | httpx.Timeout) -> None:
    validate_timeout(timeout)


@pytest.mark.parametrize("timeout", [0, 0.0, -1])
def test_validate_timeout_invalid(timeout: float) -> None:
    with pytest.raises(ValueError, match=r"timeout must be > 0, got"):
        validate_timeout(timeout)


##########################################
#     Tests for validate_status_code     #
##########################################


@pytest.mark.parametrize("status_code", [100, 401, 419, 599])
def test_validate_status_code_valid(status_code: int) -> None:
    validate_status_code(status_code)


@pytest.mark.parametrize("status_code", [99, 600, 0])
def test_validate_status_code_invalid(status_code: int) -> None:
    with pytest.raises(ValueError, match=rf"in \[100, 599\], got {status_code}"):
        validate_status_code(status_code)


##############################################
#     Tests for validate_refresh_timeout     #
##############################################


@pytest.mark.parametrize("refresh_timeout", [None, 0.01, 30])
def test_validate_refresh_timeout_valid(refresh_timeout: float | None) -> None:
    validate_refresh_timeout(refresh_timeout)


@pytest.mark.parametrize("refresh_timeout", [0, -1.0])
def test_validate_refresh_timeout_invalid(refresh_timeout: float) -> None:
    with pytest.raises(ValueError, match=r"refresh_timeout must be > 0"):
        validate_refresh_timeout(refresh_timeout)
