import pytest

from gitbook_mirror.main import parse_arguments, validate_url
from gitbook_mirror.utils.constants import DEFAULT_OUTPUT_DIR, DEFAULT_PAGE_TIMEOUT


def test_defaults():
    args = parse_arguments(["https://docs.example.com"])

    assert args.url == "https://docs.example.com"
    assert args.output == DEFAULT_OUTPUT_DIR
    assert args.timeout == DEFAULT_PAGE_TIMEOUT
    assert not args.force_all
    assert not args.no_images
    assert not args.no_headless
    assert args.username is None


def test_flags():
    args = parse_arguments([
        "docs.example.com/guide",
        "--all",
        "-o", "out",
        "--no-images",
        "-u", "me@example.com",
        "-p", "secret",
        "--timeout", "5000",
    ])

    assert args.force_all
    assert args.output == "out"
    assert args.no_images
    assert args.username == "me@example.com"
    assert args.password == "secret"
    assert args.timeout == 5000


def test_username_requires_password():
    with pytest.raises(SystemExit):
        parse_arguments(["https://docs.example.com", "-u", "me@example.com"])


def test_validate_url():
    assert validate_url("docs.example.com") == "https://docs.example.com"
    assert validate_url("http://docs.example.com/x") == "http://docs.example.com/x"
    with pytest.raises(ValueError):
        validate_url("https://")
