r"""Multipart form building utilities.

This module turns file paths and plain fields into the ``data`` and
``files`` arguments accepted by ``httpx``. File contents are read
eagerly so that the encoded body can be replayed when a request is
retried after a token refresh.
"""

from __future__ import annotations

__all__ = ["FormDataMethod", "build_form", "guess_content_type"]

import mimetypes
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    import os
    from collections.abc import Iterable, Mapping

    FilePath = Union[str, os.PathLike[str]]

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class FormDataMethod(Enum):
    """HTTP method used to submit a form."""

    POST = "POST"
    PUT = "PUT"


def guess_content_type(path: FilePath) -> str:
    """Guess the MIME type of a file from its name.

    Args:
        path: The file path.

    Returns:
        The guessed MIME type, ``application/octet-stream`` if unknown.

    Example:
        ```pycon
        >>> from arefresh.utils.forms import guess_content_type
        >>> guess_content_type("avatar.png")
        'image/png'
        >>> guess_content_type("blob.unknownext")
        'application/octet-stream'

        ```
    """
    content_type, _ = mimetypes.guess_type(Path(path).name)
    return content_type or DEFAULT_CONTENT_TYPE


def _form_value(value: Any) -> str | list[str]:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return [v for item in value for v in _as_list(_form_value(item))]
    return str(value)


def _as_list(value: str | list[str]) -> list[str]:
    return value if isinstance(value, list) else [value]


def _file_parts(field_name: str, paths: Iterable[FilePath | None]) -> list[tuple[str, Any]]:
    parts = []
    for path in paths:
        if path is None:
            continue
        file_path = Path(path)
        parts.append(
            (field_name, (file_path.name, file_path.read_bytes(), guess_content_type(file_path)))
        )
    return parts


def build_form(
    *,
    files: Mapping[str, Iterable[FilePath | None]] | None = None,
    single_files: Iterable[FilePath | None] | None = None,
    single_field_name: str = "image",
    body: Mapping[str, Any] | None = None,
) -> tuple[dict[str, str | list[str]], list[tuple[str, Any]]]:
    """Build the form fields and file parts of a multipart request.

    ``None`` entries in the file lists are skipped, so are fields whose
    list holds no file at all.

    Args:
        files: Mapping of field names to lists of file paths.
        single_files: List of file paths sent under ``single_field_name``.
        single_field_name: Field name used for ``single_files``.
        body: Plain form fields. Booleans are sent as ``true``/``false``,
            lists as repeated fields and other values as strings.

    Returns:
        The ``data`` and ``files`` arguments for ``httpx``.

    Example:
        ```pycon
        >>> from arefresh.utils.forms import build_form
        >>> data, parts = build_form(body={"title": "My Gallery", "public": True})
        >>> data
        {'title': 'My Gallery', 'public': 'true'}
        >>> parts
        []

        ```
    """
    data = {name: _form_value(value) for name, value in (body or {}).items() if value is not None}
    parts = []
    if single_files is not None:
        parts.extend(_file_parts(single_field_name, single_files))
    for field_name, paths in (files or {}).items():
        parts.extend(_file_parts(field_name, paths))
    return data, parts
