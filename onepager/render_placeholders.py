"""Placeholder substitution for report templates.

Text placeholders are ``{{fieldKey}}``. Image placeholders are ``<img>`` tags
whose ``alt`` text names the asset (``logo``, ``flag``): the tag gets the
asset URL as its ``src``, or is removed when no asset was supplied.
"""

import re
from html import escape

PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")
IMG_TAG = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
ALT_ATTR = re.compile(r"""\balt\s*=\s*(["'])(.*?)\1""", re.IGNORECASE | re.DOTALL)
SRC_ATTR = re.compile(r"""\bsrc\s*=\s*(["']).*?\1""", re.IGNORECASE | re.DOTALL)


def render_text(value: str) -> str:
    """Escape a cell for HTML, keeping line breaks."""
    return escape(value).replace("\n", "<br>")


def fill_placeholders(template: str, field_map: dict[str, str]) -> str:
    """Replace every ``{{key}}``; placeholders without a field are blanked."""

    def _sub(match: re.Match) -> str:
        value = field_map.get(match.group(1))
        return render_text(value) if value else ""

    return PLACEHOLDER.sub(_sub, template)


def apply_images(html: str, images: dict[str, str | None]) -> str:
    """Point tagged ``<img>`` elements at their asset, or remove them.

    Images without an ``alt`` tag are left alone.
    """

    def _sub(match: re.Match) -> str:
        tag = match.group(0)
        alt = ALT_ATTR.search(tag)
        if alt is None:
            return tag
        url = images.get(alt.group(2).strip())
        if not url:
            return ""
        src = f'src="{escape(url, quote=True)}"'
        if SRC_ATTR.search(tag):
            return SRC_ATTR.sub(lambda _: src, tag, count=1)
        return tag[:-1].rstrip("/ ") + f" {src}>"

    return IMG_TAG.sub(_sub, html)


def image_tags(template: str) -> set[str]:
    """Alt tags of every image placeholder in a template."""
    tags = set()
    for tag in IMG_TAG.findall(template):
        alt = ALT_ATTR.search(tag)
        if alt:
            tags.add(alt.group(2).strip())
    return tags
