"""
Shared constants for the GitBook mirror.

Contains default settings and the DOM selectors the extractors rely on.
"""

# Default user agent string for the rendering browser
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

# Default page load timeout in milliseconds (for Playwright)
DEFAULT_PAGE_TIMEOUT = 30000

# How long to wait for a login form before assuming none is needed
LOGIN_PROBE_TIMEOUT = 10000

# How long to wait for the content landmark on each TOC page
CONTENT_WAIT_TIMEOUT = 30000

# Playwright load state used for navigation
DEFAULT_WAIT_UNTIL = "networkidle"

DEFAULT_VIEWPORT = {"width": 1280, "height": 800}

DEFAULT_OUTPUT_DIR = "./output"

INDEX_FILENAME = "README.md"

IMAGES_DIRNAME = "images"

# Page structure
MAIN_SELECTOR = "main"
TITLE_SELECTOR = "h1"
SUBTITLE_SELECTOR = "p.text-lg.text-tint"
BODY_SELECTOR = ".whitespace-pre-wrap"
TOC_SELECTOR = '[data-testid="table-of-contents"]'

# Login form
EMAIL_INPUT_SELECTOR = 'input[type="email"]'
PASSWORD_INPUT_SELECTOR = 'input[type="password"]'
SUBMIT_SELECTOR = 'button[type="submit"]'
