"""HTML to Markdown conversion for extracted article content."""

import re

from markdownify import markdownify

from .exceptions import ConversionError


def html_to_markdown(html: str, url: str = "") -> str:
    """
    Convert an HTML fragment to Markdown.

    Raises:
        ConversionError: If the fragment is not a string or cannot be converted
    """
    if not isinstance(html, str):
        raise ConversionError(url, f"Expected an HTML string, got {type(html).__name__}")

    try:
        markdown = markdownify(html, heading_style="ATX", bullets="-")
    except (ValueError, TypeError, AttributeError, RecursionError) as e:
        raise ConversionError(url, f"Failed to convert HTML to Markdown: {e}") from e

    # Collapse the blank-line runs markdownify leaves between blocks
    return re.sub(r"\n{3,}", "\n\n", markdown).strip()
