import asyncio

import pytest

from gitbook_mirror.mirror.mirror import GitbookMirror, build_index
from gitbook_mirror.mirror.renderer import NavigationError
from gitbook_mirror.mirror.toc import TocEntry
from gitbook_mirror.utils.constants import (
    EMAIL_INPUT_SELECTOR,
    PASSWORD_INPUT_SELECTOR,
    SUBMIT_SELECTOR,
)


SITE = "https://docs.example.com"

LANDING = """
<html><body>
<nav data-testid="table-of-contents">
  <ul>
    <li><a href="/intro">Intro</a>
      <ul><li><a href="/guide/setup">Setup</a></li></ul>
    </li>
  </ul>
</nav>
<main><h1>Welcome</h1></main>
</body></html>
"""

PIC = "https://cdn.example.com/pic.png"


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def site_pages(make_page):
    return {
        SITE: LANDING,
        f"{SITE}/intro": make_page("<p>Welcome aboard</p>", title="Intro"),
        f"{SITE}/guide/setup": make_page(
            f'<p>Install it</p><img src="{PIC}" alt="Shot">',
            title="Setup"
        ),
    }


def test_build_index_nests_by_level():
    entries = [
        TocEntry("Home", "/", 1),
        TocEntry("Guide", "/guide", 1),
        TocEntry("Setup", "/guide/setup", 2),
    ]

    assert build_index("Docs", entries, "docs.example.com") == (
        "# Docs\n\n## Contents\n\n"
        "- [Home](docs.example.com.md)\n"
        "- [Guide](guide.md)\n"
        "  - [Setup](guide/setup.md)\n"
    )


def test_full_site_mirror(tmp_path, make_renderer, site_pages):
    renderer = make_renderer(pages=site_pages, images={PIC: b"png-bytes"})
    mirror = GitbookMirror(SITE, output_dir=str(tmp_path), renderer=renderer)

    result = run(mirror.run())

    assert (tmp_path / "README.md").read_text(encoding="utf-8") == (
        "# Example Docs\n\n## Contents\n\n"
        "- [Intro](intro.md)\n"
        "  - [Setup](guide/setup.md)\n"
    )

    intro = (tmp_path / "intro.md").read_text(encoding="utf-8")
    assert "# Intro" in intro
    assert "Welcome aboard" in intro
    assert intro.endswith("aboard\n")

    setup = (tmp_path / "guide" / "setup.md").read_text(encoding="utf-8")
    assert "Install it" in setup
    assert "](../images/guide/image_" in setup
    assert PIC not in setup
    assert len(list((tmp_path / "images" / "guide").iterdir())) == 1

    assert result.mode == "site"
    assert result.toc_entries == 2
    assert result.pages_written == 2
    assert result.images_downloaded == 1
    assert result.errors == []
    assert renderer.started and renderer.stopped


def test_pages_are_visited_one_at_a_time(tmp_path, make_renderer, site_pages):
    renderer = make_renderer(pages=site_pages)

    run(GitbookMirror(SITE, output_dir=str(tmp_path), renderer=renderer).run())

    assert renderer.max_open == 1
    assert renderer.open_pages == 0
    assert renderer.visited == [SITE, f"{SITE}/intro", f"{SITE}/guide/setup"]


def test_without_images_keeps_remote_links(tmp_path, make_renderer, site_pages):
    renderer = make_renderer(pages=site_pages, images={PIC: b"png-bytes"})
    mirror = GitbookMirror(
        SITE,
        output_dir=str(tmp_path),
        download_images=False,
        renderer=renderer
    )

    run(mirror.run())

    setup = (tmp_path / "guide" / "setup.md").read_text(encoding="utf-8")
    assert f"![Shot]({PIC})" in setup
    assert renderer.fetched == []
    assert not (tmp_path / "images").exists()


def test_blank_page_is_skipped(tmp_path, make_renderer, site_pages):
    site_pages[f"{SITE}/intro"] = "<html><body><nav>Menu</nav></body></html>"
    renderer = make_renderer(pages=site_pages)

    result = run(GitbookMirror(SITE, output_dir=str(tmp_path), renderer=renderer).run())

    assert not (tmp_path / "intro.md").exists()
    assert (tmp_path / "guide" / "setup.md").exists()
    assert result.pages_skipped == 1
    assert result.pages_written == 1


def test_root_entry_named_after_domain(tmp_path, make_renderer, make_page):
    pages = {
        SITE: '<nav data-testid="table-of-contents"><ul><li><a href="/">Home</a></li></ul></nav>',
        f"{SITE}/": make_page("<p>Front page</p>", title="Home"),
    }
    renderer = make_renderer(pages=pages)

    run(GitbookMirror(SITE, output_dir=str(tmp_path), renderer=renderer).run())

    assert "Front page" in (tmp_path / "docs.example.com.md").read_text(encoding="utf-8")
    assert "- [Home](docs.example.com.md)" in (tmp_path / "README.md").read_text(encoding="utf-8")


def test_navigation_failure_skips_entry(tmp_path, make_renderer, site_pages):
    renderer = make_renderer(pages=site_pages, failing={f"{SITE}/intro"})

    result = run(GitbookMirror(SITE, output_dir=str(tmp_path), renderer=renderer).run())

    assert not (tmp_path / "intro.md").exists()
    assert (tmp_path / "guide" / "setup.md").exists()
    assert "- [Intro](intro.md)" in (tmp_path / "README.md").read_text(encoding="utf-8")
    assert len(result.errors) == 1
    assert result.errors[0]["url"] == f"{SITE}/intro"
    assert result.errors[0]["type"] == "navigation_error"
    assert renderer.open_pages == 0


def test_single_page_mode(tmp_path, make_renderer, site_pages):
    renderer = make_renderer(pages=site_pages, images={PIC: b"png-bytes"})
    mirror = GitbookMirror(f"{SITE}/guide/setup", output_dir=str(tmp_path), renderer=renderer)

    result = run(mirror.run())

    setup = (tmp_path / "setup.md").read_text(encoding="utf-8")
    assert "Install it" in setup
    assert "](images/guide/image_" in setup
    assert not (tmp_path / "README.md").exists()
    assert result.mode == "page"
    assert result.pages_written == 1
    assert renderer.visited == [f"{SITE}/guide/setup"]


def test_force_all_mirrors_whole_site_from_page_url(tmp_path, make_renderer, site_pages):
    site_pages[f"{SITE}/guide"] = LANDING
    renderer = make_renderer(pages=site_pages)
    mirror = GitbookMirror(
        f"{SITE}/guide",
        output_dir=str(tmp_path),
        force_all=True,
        renderer=renderer
    )

    result = run(mirror.run())

    assert result.mode == "site"
    assert (tmp_path / "README.md").exists()
    assert (tmp_path / "intro.md").exists()


def test_single_page_navigation_failure_is_fatal(tmp_path, make_renderer):
    url = f"{SITE}/missing"
    renderer = make_renderer(failing={url})

    with pytest.raises(NavigationError):
        run(GitbookMirror(url, output_dir=str(tmp_path), renderer=renderer).run())

    assert renderer.stopped
    assert renderer.open_pages == 0


class TestAuthentication:
    def test_login_form_is_submitted(self, tmp_path, make_renderer, site_pages):
        renderer = make_renderer(pages=site_pages, login_form=True)
        mirror = GitbookMirror(
            SITE,
            output_dir=str(tmp_path),
            username="me@example.com",
            password="secret",
            renderer=renderer
        )

        run(mirror.run())

        assert renderer.typed == [
            (EMAIL_INPUT_SELECTOR, "me@example.com"),
            (PASSWORD_INPUT_SELECTOR, "secret"),
        ]
        assert renderer.clicked == [SUBMIT_SELECTOR]
        assert (tmp_path / "intro.md").exists()

    def test_missing_login_form_continues(self, tmp_path, make_renderer, site_pages):
        renderer = make_renderer(pages=site_pages, login_form=False)
        mirror = GitbookMirror(
            SITE,
            output_dir=str(tmp_path),
            username="me@example.com",
            password="secret",
            renderer=renderer
        )

        result = run(mirror.run())

        assert renderer.typed == []
        assert renderer.clicked == []
        assert result.pages_written == 2

    def test_no_credentials_skips_login(self, tmp_path, make_renderer, site_pages):
        renderer = make_renderer(pages=site_pages, login_form=True)

        run(GitbookMirror(SITE, output_dir=str(tmp_path), renderer=renderer).run())

        assert renderer.typed == []
