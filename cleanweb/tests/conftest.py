"""
Pytest fixtures for cleanweb tests.
"""

import pytest

from cleanweb.cache import MemoryCache
from cleanweb.config import ParserConfig
from cleanweb.parser import Parser

from .fakes import FakeStrategy, fake_converter, fake_extractor


@pytest.fixture
def memory_cache():
    """Cache without a janitor thread."""
    cache = MemoryCache(cleanup_interval=None)
    yield cache
    cache.close()


@pytest.fixture
def temp_cache_dir(tmp_path):
    """Directory for DiskCache tests."""
    return tmp_path / "cache"


@pytest.fixture
def direct():
    return FakeStrategy("direct")


@pytest.fixture
def browser():
    return FakeStrategy("browser")


@pytest.fixture
def parser(memory_cache, direct, browser):
    """Parser in direct mode with fake strategies, extractor and converter."""
    return Parser(
        ParserConfig(cache=memory_cache),
        direct=direct,
        browser=browser,
        extractor=fake_extractor,
        converter=fake_converter,
    )
