"""Content normalization and cleaning utilities."""
import copy
import re
from typing import Optional
import logging

import bleach
from bs4 import BeautifulSoup
from slugify import slugify

logger = logging.getLogger(__name__)


# Named entities restored to literal text. Anything else passes through.
HTML_ENTITIES = {
    'amp': '&',
    'lt': '<',
    'gt': '>',
    'quot': '"',
    'apos': "'",
    'nbsp': ' ',
    'hellip': '…',
    'mdash': '—',
    'ndash': '–',
    'lsquo': '‘',
    'rsquo': '’',
    'ldquo': '“',
    'rdquo': '”',
}

ENTITY_PATTERN = re.compile(r'&(#[0-9]+|#[xX][0-9a-fA-F]+|[A-Za-z]+);')
TAG_PATTERN = re.compile(r'<.+?>', re.DOTALL)

# Characters not allowed in file names on common platforms
FILENAME_UNSAFE = re.compile(r'[/\\:*?"<>|]')
MAX_FILENAME_LENGTH = 100


def _decode_entity(match: re.Match) -> str:
    name = match.group(1)

    if not name.startswith('#'):
        return HTML_ENTITIES.get(name, match.group(0))

    try:
        if name[1] in 'xX':
            code = int(name[2:], 16)
        else:
            code = int(name[1:])
    except ValueError:
        return match.group(0)

    # Surrogates and out-of-range values cannot be written out later
    if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
        return match.group(0)

    return chr(code)


def restore_html_entity(text: str) -> str:
    """
    Decode character references back to literal text.

    Named entities from HTML_ENTITIES plus decimal (&#65;) and
    hexadecimal (&#x41;) references are decoded in a single pass, so
    "&amp;lt;" becomes "&lt;" rather than "<".

    Args:
        text: Text that may contain character references

    Returns:
        Text with known references replaced
    """
    if not text or '&' not in text:
        return text
    return ENTITY_PATTERN.sub(_decode_entity, text)


def delete_tag(text: str) -> str:
    """Remove every <...> span, including spans that cross newlines."""
    return TAG_PATTERN.sub('', text)


def sanitize_filename(file_name: str) -> str:
    """Replace characters that cannot appear in file names and truncate."""
    file_name = FILENAME_UNSAFE.sub('_', file_name)
    return file_name[:MAX_FILENAME_LENGTH]


def absolutize_links(html: str, base_url: str) -> str:
    """
    Rewrite root-relative stylesheet, script, image and link paths.

    Args:
        html: Full page HTML
        base_url: Scheme and host, e.g. "https://ncode.syosetu.com"

    Returns:
        HTML whose root-relative references point at base_url
    """
    base_url = base_url.rstrip('/')

    html = re.sub(
        r'href="(/[^"]*\.css[^"]*)"',
        lambda m: f'href="{base_url}{m.group(1)}"',
        html,
    )
    html = re.sub(
        r'src="(/[^"]*\.js[^"]*)"',
        lambda m: f'src="{base_url}{m.group(1)}"',
        html,
    )
    html = re.sub(
        r'src="(/[^"]*\.(?:png|jpg|jpeg|gif|svg|webp)[^"]*)"',
        lambda m: f'src="{base_url}{m.group(1)}"',
        html,
    )

    def _link(match):
        path = match.group(1)
        if path.startswith('//') or '://' in path:
            return match.group(0)
        return f'href="{base_url}{path}"'

    return re.sub(r'href="(/[^"]*)"', _link, html)


class ContentCleaner:
    """
    Clean the structural HTML of a chapter body.

    Keeps the markup needed to re-render the text (paragraphs, ruby,
    emphasis, illustrations) and drops scripts, iframes and the rest.
    """

    # Allowed HTML tags for chapter content
    ALLOWED_TAGS = [
        'p', 'br', 'div', 'span',
        'ruby', 'rb', 'rp', 'rt',
        'em', 'strong', 'b', 'i', 's',
        'img', 'a', 'hr',
    ]

    # Allowed attributes
    ALLOWED_ATTRIBUTES = {
        '*': ['class', 'id'],
        'img': ['src', 'alt', 'width', 'height'],
        'a': ['href'],
    }

    # Elements dropped together with their contents
    STRIPPED_TAGS = ['script', 'style', 'iframe', 'noscript']

    def clean_html(self, html: str) -> str:
        """
        Clean HTML content.

        Args:
            html: Raw HTML string

        Returns:
            Cleaned HTML string
        """
        if not html:
            return ""

        # Parse with BeautifulSoup
        soup = BeautifulSoup(html, 'lxml')

        # Remove script and frame tags with their contents
        for tag in soup(self.STRIPPED_TAGS):
            tag.decompose()

        # Get the content
        content_html = soup.body.decode_contents() if soup.body else str(soup)

        # Bleach for final cleaning
        clean_html = bleach.clean(
            content_html,
            tags=set(self.ALLOWED_TAGS),
            attributes=self.ALLOWED_ATTRIBUTES,
            strip=True,
        )

        return clean_html.strip()

    def remove_iframes(self, document: BeautifulSoup) -> BeautifulSoup:
        """Return a copy of a full page without its <iframe> elements."""
        page = copy.copy(document)
        for frame in page('iframe'):
            frame.decompose()
        return page


class SlugGenerator:
    """Generate directory-safe names from work titles."""

    @staticmethod
    def generate_slug(text: str, default: Optional[str] = None) -> str:
        """
        Generate a directory name from text.

        Japanese characters are kept; separators and punctuation collapse
        to single hyphens.

        Args:
            text: Input text (e.g., novel title)
            default: Returned when nothing usable is left

        Returns:
            Slugified text
        """
        slug = slugify(
            text or '',
            allow_unicode=True,
            lowercase=False,
            max_length=MAX_FILENAME_LENGTH,
        )
        if not slug:
            logger.warning(f"Could not build a directory name from title: {text!r}")
            return default or 'untitled'
        return slug
