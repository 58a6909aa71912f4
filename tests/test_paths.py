import pytest

from gitbook_mirror.utils.paths import (
    entry_markdown_path,
    get_domain,
    has_page_path,
    page_filename,
    relative_link,
    write_bytes,
    write_text,
)


@pytest.mark.parametrize("entry_path,expected", [
    ("/intro", "intro.md"),
    ("intro", "intro.md"),
    ("/guide/setup", "guide/setup.md"),
    ("/guide/setup/", "guide/setup.md"),
    ("/", "docs.example.com.md"),
    ("", "docs.example.com.md"),
])
def test_entry_markdown_path(entry_path, expected):
    assert entry_markdown_path(entry_path, "docs.example.com") == expected


def test_page_filename():
    assert page_filename("https://docs.example.com/guide/setup") == "setup.md"
    assert page_filename("https://docs.example.com/guide/") == "guide.md"
    assert page_filename("https://docs.example.com") == "index.md"


def test_domain_and_page_path():
    assert get_domain("https://Docs.Example.com:8443/x") == "docs.example.com"
    assert has_page_path("https://docs.example.com/guide")
    assert not has_page_path("https://docs.example.com/")
    assert not has_page_path("https://docs.example.com")


@pytest.mark.parametrize("target,from_dir,expected", [
    ("images/a.png", "", "images/a.png"),
    ("images/guide/a.png", "guide", "../images/guide/a.png"),
    ("images/a.png", "guide/deep", "../../images/a.png"),
])
def test_relative_link(target, from_dir, expected):
    assert relative_link(target, from_dir) == expected


def test_writers_create_parent_directories(tmp_path):
    text_path = tmp_path / "a" / "b" / "page.md"
    data_path = tmp_path / "images" / "x" / "img.png"

    write_text(text_path, "héllo\n")
    write_bytes(data_path, b"\x00\x01")

    assert text_path.read_text(encoding="utf-8") == "héllo\n"
    assert data_path.read_bytes() == b"\x00\x01"
