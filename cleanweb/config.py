"""
Parser configuration.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Any

from dotenv import find_dotenv, load_dotenv

from .cache import DEFAULT_TTL, CacheBackend, MemoryCache, create_cache

MODE_DIRECT = "direct"
MODE_BROWSER = "browser"
MODES = (MODE_DIRECT, MODE_BROWSER)

DEFAULT_TIMEOUT = 60.0  # seconds
DEFAULT_BROWSER_URL = "ws://localhost:3000"
DEFAULT_IMPERSONATE = "chrome"

BROWSER_URL_SCHEMES = ("ws://", "wss://", "http://", "https://")


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


@dataclass(frozen=True)
class ParserConfig:
    """
    Immutable parser configuration.

    Build one directly, from the environment with from_env(), or by chaining
    the with_* methods, each of which returns a new validated config.
    """
    mode: str = MODE_DIRECT
    timeout: float = DEFAULT_TIMEOUT
    format_markdown: bool = False
    browser_endpoint: str | None = None
    # Already connected playwright Browser; takes precedence over the endpoint
    browser: Any = field(default=None, repr=False, compare=False)
    impersonate: str = DEFAULT_IMPERSONATE
    # None sends the User-Agent that matches the impersonation profile
    user_agent: str | None = None
    cache: CacheBackend | None = field(default_factory=MemoryCache, repr=False, compare=False)
    reject_error_status: bool = False
    block_private_networks: bool = False

    def __post_init__(self):
        if self.mode not in MODES:
            raise ValueError(f"mode must be one of {MODES}, got {self.mode!r}")
        if self.timeout is None or self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout!r}")
        if not self.impersonate:
            raise ValueError("impersonate profile must not be empty")
        if self.browser_endpoint is not None and not self.browser_endpoint.startswith(BROWSER_URL_SCHEMES):
            raise ValueError(f"browser_endpoint must be a ws(s) or http(s) URL, got {self.browser_endpoint!r}")

    @property
    def use_browser(self) -> bool:
        return self.mode == MODE_BROWSER

    def with_timeout(self, timeout: float) -> "ParserConfig":
        return replace(self, timeout=timeout)

    def with_format_markdown(self, enabled: bool = True) -> "ParserConfig":
        return replace(self, format_markdown=enabled)

    def with_browser(self, endpoint: str | None = None, browser: Any = None) -> "ParserConfig":
        """Switch to browser mode using a CDP endpoint or a connected Browser."""
        return replace(
            self,
            mode=MODE_BROWSER,
            browser_endpoint=endpoint or self.browser_endpoint,
            browser=browser if browser is not None else self.browser,
        )

    def with_direct(self) -> "ParserConfig":
        return replace(self, mode=MODE_DIRECT)

    def with_impersonate(self, profile: str, user_agent: str | None = None) -> "ParserConfig":
        return replace(self, impersonate=profile, user_agent=user_agent)

    def with_cache(self, cache: CacheBackend | None) -> "ParserConfig":
        """Use the given cache backend; None disables caching."""
        return replace(self, cache=cache)

    @classmethod
    def from_env(cls) -> "ParserConfig":
        """Build a config from environment variables (and a .env file)."""
        load_dotenv(find_dotenv(usecwd=True))

        fmt = os.getenv("CLEANWEB_FORMAT", "html").lower()
        if fmt not in ("html", "markdown"):
            raise ValueError(f"CLEANWEB_FORMAT must be 'html' or 'markdown', got {fmt!r}")

        return cls(
            mode=os.getenv("CLEANWEB_MODE", MODE_DIRECT).lower(),
            timeout=float(os.getenv("CLEANWEB_TIMEOUT", str(DEFAULT_TIMEOUT))),
            format_markdown=fmt == "markdown",
            browser_endpoint=os.getenv("BROWSER_CONTROL_URL") or DEFAULT_BROWSER_URL,
            impersonate=os.getenv("CLEANWEB_IMPERSONATE", DEFAULT_IMPERSONATE),
            cache=create_cache(
                os.getenv("CLEANWEB_CACHE_DIR") or None,
                default_ttl=float(os.getenv("CLEANWEB_CACHE_TTL", str(DEFAULT_TTL))),
            ),
            reject_error_status=_parse_bool(os.getenv("CLEANWEB_REJECT_ERROR_STATUS")),
            block_private_networks=_parse_bool(os.getenv("CLEANWEB_BLOCK_PRIVATE")),
        )
