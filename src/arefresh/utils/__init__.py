r"""Utility functions shared by the sync and async clients."""

from __future__ import annotations

__all__ = [
    "FormDataMethod",
    "StructuredFormatter",
    "build_form",
    "extract_error_message",
    "guess_content_type",
    "log_structured",
    "parse_body",
    "process_response",
    "result_from_error",
    "result_from_file_error",
    "to_transport_error",
]

from arefresh.utils.exceptions import to_transport_error
from arefresh.utils.forms import FormDataMethod, build_form, guess_content_type
from arefresh.utils.response import (
    extract_error_message,
    parse_body,
    process_response,
    result_from_error,
    result_from_file_error,
)
from arefresh.utils.structured_logging import StructuredFormatter, log_structured
