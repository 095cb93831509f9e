# ABOUTME: Deterministic HTML sanitizer and reducer applied before handing pages to the extraction model
# ABOUTME: Drops script/style blocks and comments, trims markup noise and truncates to a character budget

import re

# A tag name ends at whitespace, "/" or ">"; <style-card> and <scripted> are other elements
_TAG_END = r"(?=[\s/>])"

_SCRIPT_BLOCK = re.compile(rf"<script{_TAG_END}[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_STYLE_BLOCK = re.compile(rf"<style{_TAG_END}[^>]*>.*?</style\s*>", re.IGNORECASE | re.DOTALL)
_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_UNTERMINATED_COMMENT = re.compile(r"<!--.*\Z", re.DOTALL)
# Leftover open/close tags from unbalanced or nested blocks
_STRAY_TAG = re.compile(rf"</?(?:script|style)(?:{_TAG_END}[^>]*>?|\Z)", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_BETWEEN_TAGS = re.compile(r">\s+<")

# Markup that carries no card data
_NOISE_BLOCKS = tuple(
    re.compile(rf"<{tag}{_TAG_END}[^>]*>.*?</{tag}\s*>", re.IGNORECASE | re.DOTALL)
    for tag in ("head", "noscript", "svg")
)
_LONG_CLASS = re.compile(r'\s+class="[^"]{100,}"', re.IGNORECASE)
_NOISE_ATTRIBUTES = re.compile(
    r'\s+(?:data-[a-z0-9_-]+|id|style|on[a-z]+|aria-[a-z-]+|role|tabindex)="[^"]*"',
    re.IGNORECASE,
)
_LINK_TAG = re.compile(rf"<link{_TAG_END}[^>]*>", re.IGNORECASE)
_EMPTY_CONTAINER = re.compile(r"<(div|span)(?=[\s>])[^>]*>\s*</\1\s*>", re.IGNORECASE)

_MAIN_BLOCK = re.compile(rf"<main{_TAG_END}[^>]*>(.*?)</main\s*>", re.IGNORECASE | re.DOTALL)
PRODUCT_SECTION_MARKERS = ("product-grid", "collection")
MIN_MAIN_SECTION_CHARS = 1000

TRUNCATION_MARKER = "..."


def clean_html(html: str) -> str:
    """Strip scripts, styles and comments and normalise whitespace.

    Removal repeats until the text stops changing, so fragments that only form
    a tag after an inner removal are dropped as well.
    """
    if not html:
        return ""

    cleaned = html
    previous = None
    while cleaned != previous:
        previous = cleaned
        cleaned = _SCRIPT_BLOCK.sub("", cleaned)
        cleaned = _STYLE_BLOCK.sub("", cleaned)
        cleaned = _COMMENT.sub("", cleaned)
        cleaned = _UNTERMINATED_COMMENT.sub("", cleaned)
        cleaned = _STRAY_TAG.sub("", cleaned)

    return _collapse_whitespace(cleaned)


def _collapse_whitespace(html: str) -> str:
    collapsed = _WHITESPACE.sub(" ", html)
    return _BETWEEN_TAGS.sub("><", collapsed).strip()


def _tag_start(html: str, index: int) -> int:
    # Back up to the nearest tag so the section starts on markup, not mid-attribute
    opening = html.rfind("<", 0, index)
    return index if opening == -1 else opening


def extract_product_section(html: str) -> str:
    """Narrow a listing page down to the part that holds the products.

    Tries a ``product-grid`` marker first (Shopify themes), then a substantial
    ``<main>`` element, then a ``collection`` marker. Text before the chosen
    section is dropped; the page is returned whole when nothing matches.
    """
    index = html.find(PRODUCT_SECTION_MARKERS[0])
    if index > 0:
        return html[_tag_start(html, index) :]

    main = _MAIN_BLOCK.search(html)
    if main and len(main.group(1)) > MIN_MAIN_SECTION_CHARS:
        return main.group(1)

    index = html.find(PRODUCT_SECTION_MARKERS[1])
    if index > 0:
        return html[_tag_start(html, index) :]

    return html


def reduce_html(html: str) -> str:
    """Shrink sanitized HTML to the markup the extraction model needs.

    Drops head, noscript and svg blocks, link tags, presentational and
    scripting attributes and empty div/span wrappers, shortens very long class
    lists and keeps only the product section. Text content is never rewritten.
    """
    if not html:
        return ""

    reduced = html
    for pattern in _NOISE_BLOCKS:
        reduced = pattern.sub("", reduced)
    reduced = _NOISE_ATTRIBUTES.sub("", reduced)
    reduced = _LONG_CLASS.sub(' class="..."', reduced)
    reduced = _LINK_TAG.sub("", reduced)
    reduced = _EMPTY_CONTAINER.sub("", reduced)

    return _collapse_whitespace(extract_product_section(_collapse_whitespace(reduced)))


def prepare_html(html: str, max_chars: int) -> str:
    """Sanitize, reduce and truncate a page for a model request."""
    return truncate_html(reduce_html(clean_html(html)), max_chars)


def truncate_html(html: str, max_chars: int) -> str:
    """Cap the text at ``max_chars``, appending a marker when anything was cut."""
    if len(html) <= max_chars:
        return html
    return html[:max_chars] + TRUNCATION_MARKER
