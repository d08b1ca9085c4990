"""
Readable-content extraction.

Uses trafilatura (reader-mode extraction) first and falls back to
BeautifulSoup heuristics over the usual article containers. Metadata the
extractors miss is filled from <title> and OpenGraph/meta tags.
"""

import logging
import re

import trafilatura
from bs4 import BeautifulSoup

from .exceptions import ExtractionError
from .models import ReadableDocument

logger = logging.getLogger(__name__)

# Elements never part of the primary content
NOISE_TAGS = [
    "script", "style", "nav", "header", "footer", "aside",
    "noscript", "iframe", "form", "button", "input",
]

NOISE_SELECTORS = [
    "[class*='advertisement']", "[class*='social']", "[class*='share']",
    "[class*='related']", "[class*='newsletter']", "[class*='subscribe']",
    "[id*='comment']", "[class*='comment']",
]

CONTENT_TAGS = ["p", "h1", "h2", "h3", "h4", "h5", "h6", "ul", "ol", "blockquote", "pre", "table", "figure"]


def _meta(soup: BeautifulSoup, **attrs) -> str | None:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return tag["content"].strip() or None
    return None


def _extract_with_trafilatura(html: str, url: str) -> str | None:
    try:
        return trafilatura.extract(
            html,
            url=url,
            output_format="html",
            include_links=True,
            include_images=True,
            include_tables=True,
            include_comments=False,
            favor_recall=True,
        )
    except (ValueError, TypeError, LookupError) as e:
        logger.debug(f"trafilatura failed on {url}: {e}")
        return None


def _extract_with_beautifulsoup(html: str) -> str | None:
    """Fallback: pick the most likely article container."""
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup.find_all(NOISE_TAGS):
        tag.decompose()
    for selector in NOISE_SELECTORS:
        for element in soup.select(selector):
            element.decompose()

    article = (
        soup.find("article") or
        soup.find(attrs={"role": "main"}) or
        soup.find("main") or
        soup.find(class_=re.compile(r"^(article|post|post-content|entry-content|story)$", re.I))
    )
    if article is None:
        return None

    parts = [str(elem) for elem in article.find_all(CONTENT_TAGS, recursive=True)
             if elem.get_text(strip=True) and not elem.find_parent(CONTENT_TAGS)]
    content = "\n".join(parts) if parts else str(article)
    return content if BeautifulSoup(content, "html.parser").get_text(strip=True) else None


def extract_article(html: str, url: str) -> ReadableDocument:
    """
    Extract the readable article from raw markup.

    Args:
        html: Raw page markup
        url: Base URL of the page, used to resolve links and metadata

    Returns:
        ReadableDocument whose node holds the parsed content

    Raises:
        ExtractionError: If no readable primary content can be identified
    """
    if not isinstance(html, str) or not html.strip():
        raise ExtractionError(url, "Document is empty")

    content = _extract_with_trafilatura(html, url)
    if not content:
        logger.debug(f"trafilatura found no content in {url}, trying heuristics")
        content = _extract_with_beautifulsoup(html)
    if not content:
        raise ExtractionError(url, "No readable content found")

    node = BeautifulSoup(content, "html.parser")
    text = node.get_text(" ", strip=True)
    if not text:
        raise ExtractionError(url, "Extracted content has no text")

    page = BeautifulSoup(html, "html.parser")
    metadata = trafilatura.extract_metadata(html, default_url=url)

    title = metadata.title if metadata else None
    if not title:
        title = _meta(page, property="og:title")
    if not title and page.title and page.title.string:
        title = page.title.string.strip()
    if not title and (h1 := page.find("h1")):
        title = h1.get_text(strip=True)

    byline = metadata.author if metadata else None
    if not byline:
        byline = _meta(page, name="author") or _meta(page, property="article:author")

    site_name = metadata.sitename if metadata else None
    if not site_name:
        site_name = _meta(page, property="og:site_name")

    excerpt = metadata.description if metadata else None
    if not excerpt:
        excerpt = _meta(page, property="og:description") or _meta(page, name="description")
    if not excerpt and (first_p := node.find("p")):
        excerpt = first_p.get_text(" ", strip=True) or None

    return ReadableDocument(
        title=title or "",
        content=content,
        byline=byline,
        excerpt=excerpt,
        length=len(text),
        site_name=site_name,
        node=node,
    )
