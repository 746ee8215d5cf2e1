from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from coola.equality import objects_are_equal

from arefresh.utils.forms import FormDataMethod, build_form, guess_content_type

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def image(tmp_path: Path) -> Path:
    path = tmp_path / "avatar.png"
    path.write_bytes(b"\x89PNG")
    return path


########################################
#     Tests for guess_content_type     #
########################################


@pytest.mark.parametrize(
    ("name", "content_type"),
    [
        ("avatar.png", "image/png"),
        ("photo.jpg", "image/jpeg"),
        ("report.pdf", "application/pdf"),
        ("notes.txt", "text/plain"),
        ("archive.unknownext", "application/octet-stream"),
        ("no_extension", "application/octet-stream"),
    ],
)
def test_guess_content_type(name: str, content_type: str) -> None:
    assert guess_content_type(name) == content_type


def test_guess_content_type_path(image: Path) -> None:
    assert guess_content_type(image) == "image/png"


################################
#     Tests for build_form     #
################################


def test_build_form_empty() -> None:
    assert build_form() == ({}, [])


def test_build_form_body_values() -> None:
    data, parts = build_form(
        body={"title": "Gallery", "public": True, "draft": False, "count": 3, "skip": None}
    )
    assert objects_are_equal(data, {"title": "Gallery", "public": "true", "draft": "false", "count": "3"})
    assert parts == []


def test_build_form_body_list_values() -> None:
    data, _ = build_form(body={"tags": ["a", 2, True]})
    assert objects_are_equal(data, {"tags": ["a", "2", "true"]})


def test_build_form_single_files(image: Path) -> None:
    _, parts = build_form(single_files=[image, None])
    assert objects_are_equal(parts, [("image", ("avatar.png", b"\x89PNG", "image/png"))])


def test_build_form_single_field_name(image: Path) -> None:
    _, parts = build_form(single_files=[str(image)], single_field_name="avatar")
    assert parts[0][0] == "avatar"


def test_build_form_files_mapping(image: Path, tmp_path: Path) -> None:
    other = tmp_path / "cover.jpg"
    other.write_bytes(b"\xff\xd8")
    _, parts = build_form(files={"gallery": [image, other], "empty": [None]})
    assert objects_are_equal(
        parts,
        [
            ("gallery", ("avatar.png", b"\x89PNG", "image/png")),
            ("gallery", ("cover.jpg", b"\xff\xd8", "image/jpeg")),
        ],
    )


def test_build_form_single_files_first(image: Path) -> None:
    _, parts = build_form(files={"gallery": [image]}, single_files=[image])
    assert [name for name, _ in parts] == ["image", "gallery"]


def test_build_form_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        build_form(single_files=[tmp_path / "missing.png"])


def test_form_data_method_values() -> None:
    assert [method.value for method in FormDataMethod] == ["POST", "PUT"]
