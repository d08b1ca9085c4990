"""
cleanweb

Fetch web pages directly or through a browser, extract the readable
article, optionally convert it to Markdown, and memoize the result.
"""

__version__ = "0.3.0"

from .cache import CacheBackend, DiskCache, MemoryCache, create_cache
from .config import ParserConfig
from .exceptions import (
    BlockedURLError,
    BrowserUnavailableError,
    CleanwebError,
    ConversionError,
    ExtractionError,
    HTTPStatusError,
    NavigationError,
    NavigationTimeoutError,
    NetworkError,
    RetrievalError,
    URLParseError,
)
from .fetcher import DirectFetch, RetrievalStrategy
from .js_renderer import BrowserFetch
from .models import Article, RetrievalResult
from .parser import Parser, parse_url

__all__ = [
    "Article",
    "BlockedURLError",
    "BrowserFetch",
    "BrowserUnavailableError",
    "CacheBackend",
    "CleanwebError",
    "ConversionError",
    "DirectFetch",
    "DiskCache",
    "ExtractionError",
    "HTTPStatusError",
    "MemoryCache",
    "NavigationError",
    "NavigationTimeoutError",
    "NetworkError",
    "Parser",
    "ParserConfig",
    "RetrievalError",
    "RetrievalResult",
    "RetrievalStrategy",
    "URLParseError",
    "create_cache",
    "parse_url",
]
