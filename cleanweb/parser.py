"""
Parser - Fetch a page, extract its readable article and memoize the result.

Pipeline for a single call:
1. Validate the URL (before any network or browser work)
2. Look up (normalized URL, output format) in the cache
3. On a miss, fetch raw markup with the configured strategy
4. Extract the readable article, dropping the extractor's parse tree
5. Convert to Markdown when requested
6. Cache the finished article

Failures at any step raise and leave the cache untouched, so the next call
retries instead of replaying an error. Strategy choice is fixed per call:
there is no fallback from the browser to a direct fetch or back.
"""

import asyncio
import logging
import os
from dataclasses import replace
from typing import Callable

from .cache import CacheBackend
from .config import DEFAULT_BROWSER_URL, ParserConfig
from .converter import html_to_markdown
from .extractors import extract_article
from .fetcher import DirectFetch, RetrievalStrategy
from .js_renderer import BrowserFetch
from .models import Article, ReadableDocument
from .url_validator import cache_key, parse_target, validate_public_url

logger = logging.getLogger(__name__)

Extractor = Callable[[str, str], ReadableDocument]
Converter = Callable[[str, str], str]


class Parser:
    """Retrieval-and-memoization orchestrator."""

    def __init__(
        self,
        config: ParserConfig | None = None,
        *,
        direct: RetrievalStrategy | None = None,
        browser: RetrievalStrategy | None = None,
        extractor: Extractor = extract_article,
        converter: Converter = html_to_markdown,
    ):
        """
        Args:
            config: Parser configuration, defaults to ParserConfig()
            direct: Strategy for direct fetches, built from config if None
            browser: Strategy for browser fetches, built from config if None
            extractor: Callable (html, url) -> ReadableDocument
            converter: Callable (html, url) -> Markdown text
        """
        self.config = config or ParserConfig()
        self.extractor = extractor
        self.converter = converter

        self._direct = direct or DirectFetch(
            timeout=self.config.timeout,
            impersonate=self.config.impersonate,
            user_agent=self.config.user_agent,
            reject_error_status=self.config.reject_error_status,
        )
        self._browser = browser or BrowserFetch(
            endpoint=self.config.browser_endpoint,
            browser=self.config.browser,
            timeout=self.config.timeout,
            user_agent=self.config.user_agent,
        )

    @property
    def cache(self) -> CacheBackend[Article] | None:
        return self.config.cache

    async def __aenter__(self) -> "Parser":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the HTTP session and browser connection. The cache is left open."""
        await self._direct.close()
        await self._browser.close()

    async def parse(
        self,
        url: str,
        format_markdown: bool | None = None,
        use_browser: bool | None = None,
    ) -> Article:
        """
        Fetch url and return its readable article.

        Args:
            url: Absolute http(s) URL
            format_markdown: Convert content to Markdown; None uses the config
            use_browser: Fetch through the browser; None uses the config mode

        Raises:
            URLParseError: If url is not an absolute http(s) URL
            RetrievalError: If the page could not be fetched
            ExtractionError: If no readable content was found
            ConversionError: If Markdown conversion failed
        """
        url = await self._validate(url)
        markdown = self._format(format_markdown)
        key = cache_key(url, markdown)

        if (cached := self._cache_get(key)) is not None:
            return replace(cached)

        strategy = self._select_strategy(use_browser)
        logger.debug(f"Fetching {url} with {strategy.name} strategy")
        result = await strategy.fetch(url)

        return self._process(result.html, url, markdown, key, result.strategy)

    async def parse_html(
        self,
        html: str,
        url: str,
        format_markdown: bool | None = None,
    ) -> Article:
        """
        Extract, convert and cache caller-supplied markup without fetching.

        The article is cached under the same key parse() would use for url.
        """
        parse_target(url)
        url = url.strip()
        markdown = self._format(format_markdown)
        return self._process(html, url, markdown, cache_key(url, markdown), "markup")

    def _format(self, format_markdown: bool | None) -> bool:
        return self.config.format_markdown if format_markdown is None else bool(format_markdown)

    def _select_strategy(self, use_browser: bool | None) -> RetrievalStrategy:
        if use_browser is None:
            use_browser = self.config.use_browser
        return self._browser if use_browser else self._direct

    async def _validate(self, url: str) -> str:
        parse_target(url)
        url = url.strip()
        if self.config.block_private_networks:
            # DNS resolution blocks, keep it off the event loop
            await asyncio.to_thread(validate_public_url, url)
        return url

    def _cache_get(self, key: str) -> Article | None:
        if self.cache is None:
            return None
        article = self.cache.get(key)
        logger.debug(f"Cache {'hit' if article is not None else 'miss'} for {key}")
        return article

    def _process(self, html: str, url: str, markdown: bool, key: str, strategy: str) -> Article:
        document = self.extractor(html, url)
        article = document.to_article(url=url, strategy=strategy)
        del document

        if markdown:
            article.content = self.converter(article.content, url)

        if self.cache is not None:
            self.cache.set_default(key, replace(article))
        logger.info(f"Parsed {url} ({strategy}, markdown={markdown}, {article.length} chars)")
        return article


async def parse_url(
    url: str,
    format_markdown: bool = False,
    use_browser: bool = False,
    config: ParserConfig | None = None,
) -> Article:
    """Convenience function to parse a single URL with a throwaway parser."""
    if config is None:
        config = ParserConfig(
            cache=None,
            browser_endpoint=os.getenv("BROWSER_CONTROL_URL") or DEFAULT_BROWSER_URL,
        )
    async with Parser(config) as parser:
        return await parser.parse(url, format_markdown=format_markdown, use_browser=use_browser)
