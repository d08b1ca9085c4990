"""
Tests for the Parser orchestrator.

Uses fake retrieval strategies that count calls so cache behaviour can be
checked without network or browser access.
"""

import asyncio
import gc
import threading
import weakref
from unittest.mock import patch

import pytest

from cleanweb.config import ParserConfig
from cleanweb.exceptions import (
    BlockedURLError,
    BrowserUnavailableError,
    ConversionError,
    ExtractionError,
    NetworkError,
    URLParseError,
)
from cleanweb.js_renderer import BrowserFetch
from cleanweb.models import ReadableDocument
from cleanweb.parser import Parser, parse_url
from cleanweb.url_validator import cache_key

from .fakes import ARTICLE_HTML, FakeStrategy, fake_converter, fake_extractor

URL = "https://example.com/story"


class TestCaching:
    """Memoization of parsed articles."""

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self, parser, direct):
        """Two identical parse() calls should fetch only once."""
        first = await parser.parse(URL)
        second = await parser.parse(URL)

        assert len(direct.calls) == 1
        assert first == second

    @pytest.mark.asyncio
    async def test_markdown_flag_uses_distinct_key(self, parser, direct, memory_cache):
        """HTML and Markdown results for one URL must not collide."""
        html_article = await parser.parse(URL, format_markdown=False)
        md_article = await parser.parse(URL, format_markdown=True)

        assert len(direct.calls) == 2
        assert not html_article.content.startswith("MD:")
        assert md_article.content.startswith("MD:")
        assert memory_cache.get(cache_key(URL, False)).content == html_article.content
        assert memory_cache.get(cache_key(URL, True)).content == md_article.content

    @pytest.mark.asyncio
    async def test_equivalent_urls_share_entry(self, parser, direct):
        """Case and fragment differences should hit the same cache entry."""
        await parser.parse("https://Example.com/story#top")
        await parser.parse(URL)

        assert len(direct.calls) == 1

    @pytest.mark.asyncio
    async def test_cache_hit_returns_copy(self, parser):
        """Mutating a returned article must not change the cached one."""
        article = await parser.parse(URL)
        article.content = "changed"

        again = await parser.parse(URL)
        assert again.content != "changed"

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self, parser, direct, memory_cache):
        """A failed fetch should be retried on the next call and then cached."""
        direct.fail_next(NetworkError(URL, "Connection refused"))

        with pytest.raises(NetworkError):
            await parser.parse(URL)
        assert memory_cache.get(cache_key(URL, False)) is None

        article = await parser.parse(URL)
        assert len(direct.calls) == 2
        assert memory_cache.get(cache_key(URL, False)) == article

    @pytest.mark.asyncio
    async def test_extraction_failure_not_cached(self, parser, direct, memory_cache):
        """Extraction errors propagate and leave the cache empty."""
        direct.html = "<html><body><p>no article here</p></body></html>"

        with pytest.raises(ExtractionError):
            await parser.parse(URL)
        assert memory_cache.size == 0

    @pytest.mark.asyncio
    async def test_conversion_failure_not_cached(self, memory_cache, direct, browser):
        """Conversion errors propagate and leave the cache empty."""
        def broken_converter(html, url):
            raise ConversionError(url, "Failed to convert HTML to Markdown")

        parser = Parser(
            ParserConfig(cache=memory_cache),
            direct=direct,
            browser=browser,
            extractor=fake_extractor,
            converter=broken_converter,
        )

        with pytest.raises(ConversionError):
            await parser.parse(URL, format_markdown=True)
        assert memory_cache.size == 0

    @pytest.mark.asyncio
    async def test_runs_without_cache(self, direct, browser):
        """A parser with caching disabled fetches every time."""
        parser = Parser(
            ParserConfig(cache=None),
            direct=direct,
            browser=browser,
            extractor=fake_extractor,
        )

        await parser.parse(URL)
        await parser.parse(URL)
        assert len(direct.calls) == 2

    @pytest.mark.asyncio
    async def test_shared_cache_across_parsers(self, memory_cache, direct, browser):
        """Parsers sharing one cache reuse each other's results."""
        config = ParserConfig(cache=memory_cache)
        first = Parser(config, direct=direct, browser=browser, extractor=fake_extractor)
        other_direct = FakeStrategy("direct")
        second = Parser(config, direct=other_direct, browser=browser, extractor=fake_extractor)

        await first.parse(URL)
        await second.parse(URL)

        assert len(other_direct.calls) == 0


class TestValidation:
    """URL validation happens before any retrieval."""

    @pytest.mark.asyncio
    async def test_invalid_url_never_fetches(self, parser, direct, browser):
        """parse('not-a-url') fails with URLParseError and no fetch."""
        with pytest.raises(URLParseError):
            await parser.parse("not-a-url")

        assert direct.calls == []
        assert browser.calls == []

    @pytest.mark.asyncio
    async def test_relative_url_rejected(self, parser, direct):
        """Relative paths are not absolute addresses."""
        with pytest.raises(URLParseError):
            await parser.parse("/story")
        assert direct.calls == []

    @pytest.mark.asyncio
    async def test_private_target_blocked_when_enabled(self, memory_cache, direct, browser):
        """block_private_networks refuses loopback targets before fetching."""
        parser = Parser(
            ParserConfig(cache=memory_cache, block_private_networks=True),
            direct=direct,
            browser=browser,
            extractor=fake_extractor,
        )

        with pytest.raises(BlockedURLError):
            await parser.parse("http://127.0.0.1/admin")
        assert direct.calls == []

    @pytest.mark.asyncio
    async def test_parse_html_validates_url(self, parser):
        """parse_html needs a valid URL to derive its cache key."""
        with pytest.raises(URLParseError):
            await parser.parse_html(ARTICLE_HTML, "not-a-url")


class TestStrategySelection:
    """Choosing between direct and browser retrieval."""

    @pytest.mark.asyncio
    async def test_direct_mode_by_default(self, parser, direct, browser):
        """Default config fetches directly."""
        article = await parser.parse(URL)

        assert len(direct.calls) == 1
        assert browser.calls == []
        assert article.strategy == "direct"

    @pytest.mark.asyncio
    async def test_browser_mode_uses_browser(self, memory_cache, direct, browser):
        """Browser mode always prefers the browser."""
        parser = Parser(
            ParserConfig(cache=memory_cache).with_browser("ws://browser:3000"),
            direct=direct,
            browser=browser,
            extractor=fake_extractor,
        )

        article = await parser.parse(URL)

        assert browser.calls == [URL]
        assert direct.calls == []
        assert article.strategy == "browser"

    @pytest.mark.asyncio
    async def test_per_call_override(self, parser, direct, browser):
        """use_browser=True overrides direct mode for a single call."""
        await parser.parse(URL, use_browser=True)

        assert browser.calls == [URL]
        assert direct.calls == []

    @pytest.mark.asyncio
    async def test_no_fallback_to_direct(self, parser, direct, browser):
        """A browser failure must not fall back to a direct fetch."""
        browser.fail_next(BrowserUnavailableError(URL, "No browser configured"))

        with pytest.raises(BrowserUnavailableError):
            await parser.parse(URL, use_browser=True)
        assert direct.calls == []

    @pytest.mark.asyncio
    async def test_unconfigured_browser_raises(self, memory_cache, direct):
        """Browser mode without endpoint or session fails without network access."""
        config = ParserConfig(cache=memory_cache, mode="browser")
        parser = Parser(config, direct=direct, extractor=fake_extractor)

        with patch("cleanweb.js_renderer.async_playwright") as mock_playwright:
            with pytest.raises(BrowserUnavailableError):
                await parser.parse(URL)
            mock_playwright.assert_not_called()

        assert direct.calls == []
        assert memory_cache.size == 0
        assert isinstance(parser._browser, BrowserFetch)


class TestParseHtml:
    """The bypass entry point for pre-fetched markup."""

    @pytest.mark.asyncio
    async def test_matches_parse(self, memory_cache, direct, browser):
        """parse_html(M, T) and parse(T) agree when the fetch returns M."""
        fetched = Parser(
            ParserConfig(cache=memory_cache), direct=direct, browser=browser, extractor=fake_extractor
        )
        supplied = Parser(ParserConfig(cache=None), direct=FakeStrategy(), extractor=fake_extractor)

        from_fetch = await fetched.parse(URL)
        from_markup = await supplied.parse_html(ARTICLE_HTML, URL)

        assert from_markup.content == from_fetch.content
        assert from_markup.title == from_fetch.title
        assert from_markup.length == from_fetch.length

    @pytest.mark.asyncio
    async def test_populates_cache_for_parse(self, parser, direct):
        """parse() after parse_html() for the same URL is a cache hit."""
        await parser.parse_html(ARTICLE_HTML, URL)
        article = await parser.parse(URL)

        assert direct.calls == []
        assert article.strategy == "markup"

    @pytest.mark.asyncio
    async def test_markdown_output(self, parser):
        """parse_html honours the format flag."""
        article = await parser.parse_html(ARTICLE_HTML, URL, format_markdown=True)
        assert article.content.startswith("MD:")

    @pytest.mark.asyncio
    async def test_parse_tree_not_retained(self, parser):
        """Returned articles carry no extractor parse tree."""
        article = await parser.parse_html(ARTICLE_HTML, URL)
        assert not hasattr(article, "node")


class TestConcurrencyAndCancellation:
    """Concurrent callers and cancelled calls."""

    @pytest.mark.asyncio
    async def test_cancellation_aborts_fetch(self, parser, direct, memory_cache):
        """Cancelling parse() stops the in-flight fetch and caches nothing."""
        direct.delay = 10

        task = asyncio.create_task(parser.parse(URL))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert memory_cache.size == 0

    @pytest.mark.asyncio
    async def test_concurrent_calls_for_different_urls(self, parser, direct, memory_cache):
        """Concurrent parses each produce their own cache entry."""
        urls = [f"https://example.com/{i}" for i in range(5)]

        articles = await asyncio.gather(*(parser.parse(u) for u in urls))

        assert len(articles) == 5
        assert memory_cache.size == 5

    @pytest.mark.asyncio
    async def test_close_releases_strategies(self, parser, direct, browser):
        """Closing the parser closes both strategies."""
        async with parser:
            await parser.parse(URL)

        assert direct.closed
        assert browser.closed


class TestParseUrl:
    """The module-level convenience function."""

    @pytest.mark.asyncio
    async def test_uses_throwaway_parser(self):
        """parse_url builds and closes a parser around a single call."""
        strategy = FakeStrategy()

        def build(config):
            return Parser(config, direct=strategy, extractor=fake_extractor, converter=fake_converter)

        with patch("cleanweb.parser.Parser", side_effect=build):
            article = await parse_url(URL, format_markdown=True)

        assert strategy.calls == [URL]
        assert strategy.closed
        assert article.content.startswith("MD:")


class TestExtractorContract:
    """What the parser does with extractor output."""

    @pytest.mark.asyncio
    async def test_extractor_receives_base_url(self, memory_cache, direct, browser):
        """The extractor gets the raw markup and the requested URL."""
        seen = []

        def recording_extractor(html, url):
            seen.append((html, url))
            return ReadableDocument(title="t", content="<p>c</p>", length=1, node=object())

        parser = Parser(
            ParserConfig(cache=memory_cache), direct=direct, browser=browser, extractor=recording_extractor
        )
        await parser.parse(URL)

        assert seen == [(ARTICLE_HTML, URL)]


class TestResourceRelease:
    """Throwaway parsers do not outlive their callers."""

    def test_dropped_default_parsers_release_cache(self):
        """Default caches and their janitor threads go away with the parser."""
        threads_before = threading.active_count()
        refs = []
        for _ in range(5):
            parser = Parser(ParserConfig())
            refs.append(weakref.ref(parser.cache))
            del parser

        gc.collect()
        for thread in threading.enumerate():
            if thread.name == "cleanweb-cache-janitor":
                thread.join(timeout=1)

        assert all(ref() is None for ref in refs)
        assert threading.active_count() <= threads_before


class TestUrlWhitespace:
    """Surrounding whitespace is stripped before the URL is used."""

    @pytest.mark.asyncio
    async def test_padded_url_is_stripped(self, parser, direct):
        """The strategy and extractor see the trimmed URL."""
        article = await parser.parse(f"  {URL}  ")

        assert direct.calls == [URL]
        assert article.url == URL

    @pytest.mark.asyncio
    async def test_parse_html_strips_url(self, parser):
        article = await parser.parse_html(ARTICLE_HTML, f"\t{URL}\n")
        assert article.url == URL
