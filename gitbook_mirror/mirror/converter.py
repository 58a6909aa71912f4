"""
HTML to Markdown conversion for GitBook pages.

Conversion is driven by an ordered table of rules. For every element,
after its children have been converted, the first rule whose predicate
matches renders the element; elements no rule matches use markdownify's
default mapping. New content shapes are supported by adding a rule to
``build_rules``.
"""

import base64
import hashlib
import posixpath
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlparse

from bs4 import Tag
from markdownify import ATX, MarkdownConverter

from .images import ImageContext, image_markdown, markdown_url
from ..utils.log import get_logger
from ..utils.constants import IMAGES_DIRNAME


HEADING_TAGS = ('h1', 'h2', 'h3', 'h4', 'h5', 'h6')
LIST_TAGS = ('ul', 'ol')
NUMBERED_ITEM_TAGS = ('p', 'div', 'li', 'span')

NUMBER_PATTERN = re.compile(r'[0-9]+')
EMPTY_COMMENT_PATTERN = re.compile(r'<!--\s*-->')
SHIKI_TOKEN_PATTERN = re.compile(r'color: var\(--shiki-token-(\w+)\)')

IMAGE_PROXY_MARKER = '/~gitbook/image?url='

BADGE_CLASS = 'can-override-text'
NUMBER_GROUP_CLASS = 'flex-1'
CODE_GROUP_CLASS = 'group/codeblock'
FILENAME_SELECTOR = '.inline-flex.items-center.justify-center'


@dataclass(frozen=True)
class ConversionRule:
    """A content shape and the Markdown it renders to."""

    name: str
    match: Callable[[Tag], bool]
    render: Callable[[str, Tag], str]


# DOM helpers

def has_class(node: Tag, name: str) -> bool:
    return name in (node.get('class') or [])


def closest(node: Tag, predicate: Callable[[Tag], bool]) -> Optional[Tag]:
    """Return the node or its nearest ancestor satisfying ``predicate``."""
    current = node
    while isinstance(current, Tag):
        if predicate(current):
            return current
        current = current.parent
    return None


def previous_element_sibling(node: Tag) -> Optional[Tag]:
    for sibling in node.previous_siblings:
        if isinstance(sibling, Tag):
            return sibling
    return None


def text_of(node: Optional[Tag]) -> str:
    return node.get_text().strip() if node is not None else ""


def find_number_badge(node: Tag) -> Optional[str]:
    """
    Find the manual numbering badge that belongs to ``node``.

    The badge lives in the element preceding the node's ``.flex-1``
    group. Anything that does not fit that shape has no number.

    Returns:
        The badge number as a string, or None
    """
    group = closest(node, lambda el: has_class(el, NUMBER_GROUP_CLASS))
    if group is None:
        return None
    previous = previous_element_sibling(group)
    if previous is None:
        return None
    badge = previous.select_one(f'.{BADGE_CLASS}')
    number = text_of(badge)
    if NUMBER_PATTERN.fullmatch(number):
        return number
    return None


def list_depth(node: Tag) -> int:
    """Count the ul/ol ancestors of a node."""
    return sum(1 for parent in node.parents if parent.name in LIST_TAGS)


# Image sources

def unwrap_image_proxy(src: str) -> str:
    """
    Return the real image URL behind a GitBook image proxy link.

    ``https://host/~gitbook/image?url=<encoded>&width=...`` wraps the
    original URL as an encoded query parameter.
    """
    if IMAGE_PROXY_MARKER not in src:
        return src
    values = parse_qs(urlparse(src).query).get('url')
    if values and values[0]:
        return values[0]
    wrapped = src[src.index('url=') + len('url='):]
    return unquote(wrapped) if wrapped else src


def source_hash(src: str) -> str:
    """Eight filename-safe characters identifying an image source."""
    digest = hashlib.sha256(src.encode('utf-8')).digest()
    return base64.urlsafe_b64encode(digest).decode('ascii')[:8]


def local_image_path(src: str) -> Optional[str]:
    """
    Compute the local path of an image source.

    Returns:
        ``images/<hash>_<basename>``, or None if ``src`` is not an
        absolute URL. The basename is made safe for a Markdown link.
    """
    try:
        parsed = urlparse(src)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    basename = markdown_url(posixpath.basename(parsed.path)) or 'image'
    return posixpath.join(IMAGES_DIRNAME, f"{source_hash(src)}_{basename}")


# Rule implementations

def is_hint(node: Tag) -> bool:
    return has_class(node, 'hint')


def render_hint(content: str, node: Tag) -> str:
    kind = 'info'
    if has_class(node, 'bg-success'):
        kind = 'success'
    if has_class(node, 'bg-warning'):
        kind = 'warning'
    if has_class(node, 'bg-danger'):
        kind = 'danger'

    heading = node.find('h3')
    title = f" {text_of(heading)}" if heading else ''

    paragraphs = [
        p for p in node.find_all('p')
        if heading is None or heading not in p.parents
    ]
    if paragraphs:
        body = '\n> '.join(text_of(p) for p in paragraphs)
    else:
        body = ' '.join(
            s.strip() for s in node.find_all(string=True)
            if s.strip() and (heading is None or heading not in s.parents)
        )

    return f">[!{kind}]{title}\n> {body}\n\n"


def is_task_item(node: Tag) -> bool:
    return node.name == 'li' and node.select_one('button[role="checkbox"]') is not None


def render_task_item(content: str, node: Tag) -> str:
    checkbox = node.select_one('button[role="checkbox"]')
    checked = (
        checkbox.get('aria-checked') == 'true'
        or checkbox.get('data-state') == 'checked'
    )
    indent = '  ' * max(0, list_depth(node) - 1)
    marker = '- [x] ' if checked else '- [ ] '
    return indent + marker + content.strip() + '\n'


def is_list(node: Tag) -> bool:
    return node.name in LIST_TAGS


def render_list(content: str, node: Tag) -> str:
    items = [line for line in content.split('\n') if line.strip()]
    return '\n' + '\n'.join(items) + '\n'


def is_subtitle(node: Tag) -> bool:
    return node.name == 'p' and (
        has_class(node, 'subtitle')
        or (has_class(node, 'text-lg') and has_class(node, 'text-tint'))
    )


def render_subtitle(content: str, node: Tag) -> str:
    return '\n*' + content.strip() + '*\n\n'


def is_heading(node: Tag) -> bool:
    return node.name in HEADING_TAGS


def render_heading(content: str, node: Tag) -> str:
    level = int(node.name[1])
    number = find_number_badge(node)
    prefix = f"{number}. " if number else ''
    return '\n' + '#' * level + ' ' + prefix + text_of(node) + '\n'


def is_numbered_item(node: Tag) -> bool:
    if node.name not in NUMBERED_ITEM_TAGS:
        return False
    # Only the first element of a numbering group gets the number; an
    # element right after a heading never does.
    if previous_element_sibling(node) is not None:
        return False
    return find_number_badge(node) is not None


def render_numbered_item(content: str, node: Tag) -> str:
    number = find_number_badge(node)
    text = content.strip()
    # An inner element of the same group already carries the number
    if text.startswith(f"{number}. "):
        return content
    return f"\n{number}. {text}\n"


def is_number_badge(node: Tag) -> bool:
    return has_class(node, BADGE_CLASS) and NUMBER_PATTERN.fullmatch(text_of(node)) is not None


def is_copy_button(node: Tag) -> bool:
    return node.name == 'button' and text_of(node) == 'Copy'


def render_nothing(content: str, node: Tag) -> str:
    return ''


def is_code_block(node: Tag) -> bool:
    return (
        (node.name == 'pre' and node.find('code') is not None)
        or has_class(node, CODE_GROUP_CLASS)
    )


def code_filename(node: Tag) -> str:
    label = node.select_one(FILENAME_SELECTOR)
    if label is None and node.name == 'pre':
        group = closest(node, lambda el: has_class(el, CODE_GROUP_CLASS))
        if group is not None:
            label = group.select_one(FILENAME_SELECTOR)
    return text_of(label)


def code_language(code: Tag, filename: str) -> str:
    # Highlighted tokens carry the style, usually on spans inside the code
    for styled in [code] + code.select('[style]'):
        match = SHIKI_TOKEN_PATTERN.search(styled.get('style') or '')
        if match:
            return match.group(1)
    if '.' in filename:
        return filename.rsplit('.', 1)[1].lower()
    return ''


def render_code_block(content: str, node: Tag) -> str:
    code = node.find('code')
    if code is None:
        return ''
    text = EMPTY_COMMENT_PATTERN.sub('', code.get_text()).strip()
    if not text:
        return ''

    filename = code_filename(node)
    lang = code_language(code, filename)
    label = f"({filename})" if filename else ''
    return f"\n``` {lang}{label}\n{text}\n```\n"


def is_table(node: Tag) -> bool:
    return node.name == 'div' and node.get('role') == 'table'


def table_cell(cell: Tag) -> str:
    code = cell.find('code')
    if code is not None:
        return f"`{text_of(code)}`"
    return text_of(cell)


def render_table(content: str, node: Tag) -> str:
    rows = node.select('[role="row"]')
    if not rows:
        return ''

    markdown = '\n'
    headers = rows[0].select('[role="columnheader"]')
    if headers:
        markdown += '| ' + ' | '.join(text_of(h) for h in headers) + ' |\n'
        markdown += '| ' + ' | '.join(['---'] * len(headers)) + ' |\n'

    for row in rows[1:]:
        cells = row.select('[role="cell"]')
        if cells:
            markdown += '| ' + ' | '.join(table_cell(c) for c in cells) + ' |\n'

    return markdown + '\n'


def is_file_download(node: Tag) -> bool:
    return node.name == 'a' and node.has_attr('download')


def render_file_download(content: str, node: Tag) -> str:
    filename = node.get('download') or text_of(node)
    url = node.get('href', '')
    size = text_of(node.select_one('.text-xs.text-tint'))
    file_type = text_of(node.select_one('.text-sm.opacity-9'))
    picture = closest(node, lambda el: el.name == 'picture')
    caption = text_of(picture.find('figcaption')) if picture is not None else ''

    markdown = f"[📎 {filename}]({url})"
    if size or file_type:
        type_part = f"{file_type}, " if file_type else ''
        markdown += f" ({type_part}{size})"
    if caption:
        markdown += f"\n> {caption}"
    return '\n' + markdown + '\n'


def is_image(node: Tag) -> bool:
    return node.name == 'img'


def make_image_renderer(register: Callable[[str, str], None]) -> Callable[[str, Tag], str]:
    """
    Build the image rule's renderer.

    ``register(local_path, original_src)`` is told about every image that
    was given a local path.
    """
    def render_image(content: str, node: Tag) -> str:
        alt = node.get('alt', '')
        title = node.get('title', '')
        src = node.get('src', '')
        if not src:
            return ''

        src = unwrap_image_proxy(src)
        local_path = local_image_path(src)
        if local_path is None:
            return image_markdown(alt, markdown_url(src), title)

        register(local_path, src)
        return image_markdown(alt, local_path, title)

    return render_image


def build_rules(register_image: Callable[[str, str], None]) -> Tuple[ConversionRule, ...]:
    """
    Build the conversion rule table in priority order.

    Args:
        register_image: Callback receiving (local_path, original_src) for
            each converted image

    Returns:
        Immutable tuple of rules; the first match wins
    """
    return (
        ConversionRule('hint', is_hint, render_hint),
        ConversionRule('task_list', is_task_item, render_task_item),
        ConversionRule('lists', is_list, render_list),
        ConversionRule('subtitle', is_subtitle, render_subtitle),
        ConversionRule('headings', is_heading, render_heading),
        ConversionRule('numbered_items', is_numbered_item, render_numbered_item),
        ConversionRule('number_badge', is_number_badge, render_nothing),
        ConversionRule('copy_button', is_copy_button, render_nothing),
        ConversionRule('code_block', is_code_block, render_code_block),
        ConversionRule('tables', is_table, render_table),
        ConversionRule('images', is_image, make_image_renderer(register_image)),
        ConversionRule('file_download', is_file_download, render_file_download),
    )


class RuleConverter(MarkdownConverter):
    """markdownify converter that consults a rule table before its defaults."""

    def __init__(self, rules: Iterable[ConversionRule], **options):
        super().__init__(**options)
        self.rules = tuple(rules)

    def get_conv_fn(self, tag_name):
        default = super().get_conv_fn(tag_name)

        def convert(el, text, parent_tags=None):
            for rule in self.rules:
                if rule.match(el):
                    return rule.render(text, el)
            if default is None:
                return text
            return default(el, text, parent_tags=parent_tags)

        return convert


class MarkdownTransformer:
    """
    Converts extracted page markup to Markdown.

    One transformer is built per mirroring session; the rule table is
    shared by every page it converts.
    """

    def __init__(self):
        self.logger = get_logger("converter")
        self.rules = build_rules(self._register_image)
        self._converter = RuleConverter(
            self.rules,
            heading_style=ATX,
            bullets='-',
        )
        self._images: Optional[ImageContext] = None

    def _register_image(self, local_path: str, original_src: str) -> None:
        if self._images is not None:
            self._images.register(local_path, original_src)

    def transform(self, content_html: str, images: Optional[ImageContext] = None) -> str:
        """
        Convert markup to Markdown.

        Args:
            content_html: Markup to convert
            images: Page image context that records converted images

        Returns:
            Markdown text
        """
        if not content_html or not content_html.strip():
            return ''

        self._images = images
        try:
            return self._converter.convert(content_html).strip()
        finally:
            self._images = None
