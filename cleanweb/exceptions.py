"""
Exception hierarchy for the retrieval and extraction pipeline.

Every error carries the URL that was requested so callers can log or
report failures without threading the target through separately.
"""


class CleanwebError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"{message} ({url})")


class URLParseError(CleanwebError, ValueError):
    """Raised when a target is not an absolute http(s) URL."""

    pass


class BlockedURLError(URLParseError):
    """Raised when a target points at a private or loopback address."""

    pass


class RetrievalError(CleanwebError):
    """Raised when raw markup could not be obtained."""

    pass


class NetworkError(RetrievalError):
    """Transport failure on a direct fetch (refused, DNS, timeout)."""

    pass


class HTTPStatusError(NetworkError):
    """Non-2xx response, only raised when error statuses are rejected."""

    def __init__(self, url: str, status_code: int):
        self.status_code = status_code
        super().__init__(url, f"HTTP {status_code}")


class BrowserUnavailableError(RetrievalError):
    """No browser session is configured or it could not be reached."""

    pass


class NavigationError(RetrievalError):
    """The browser failed to navigate to the target."""

    pass


class NavigationTimeoutError(NavigationError):
    """The page did not signal load completion within the timeout."""

    pass


class ExtractionError(CleanwebError):
    """No readable primary content could be identified."""

    pass


class ConversionError(CleanwebError):
    """Converting extracted HTML to Markdown failed."""

    pass
