r"""Unit tests for package initialization and metadata."""

from __future__ import annotations

import arefresh


def test_package_version_is_string() -> None:
    """Test that __version__ is a string."""
    assert isinstance(arefresh.__version__, str)


def test_package_version_format() -> None:
    """Test that __version__ follows semantic versioning."""
    assert "." in arefresh.__version__


def test_all_exports_defined() -> None:
    """Test that all items in __all__ are defined in the module."""
    for name in arefresh.__all__:
        assert hasattr(arefresh, name), f"{name} is in __all__ but not defined in module"


def test_all_exports_sorted() -> None:
    assert arefresh.__all__ == sorted(arefresh.__all__)


def test_client_exports() -> None:
    assert arefresh.ApiClient.__module__ == "arefresh.client"
    assert arefresh.AsyncApiClient.__module__ == "arefresh.client_async"
