"""
URL Validator - Check and normalize targets before they are fetched.

Handles:
- Rejecting anything that is not an absolute http(s) URL
- Normalizing URLs so equivalent targets share a cache key
- Optional SSRF protection (private, loopback, link-local, metadata targets)
"""

import ipaddress
import socket
from urllib.parse import urlparse, urlunparse

from .exceptions import BlockedURLError, URLParseError


# Blocked IP ranges (private, loopback, link-local, metadata)
BLOCKED_IP_RANGES = [
    # IPv4 private ranges
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    # Loopback
    ipaddress.ip_network("127.0.0.0/8"),
    # Link-local
    ipaddress.ip_network("169.254.0.0/16"),
    # Reserved
    ipaddress.ip_network("0.0.0.0/8"),
    # IPv6 equivalents
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]

BLOCKED_HOSTNAMES = {
    "localhost",
    "localhost.localdomain",
    "ip6-localhost",
    "ip6-loopback",
    "metadata",
    "metadata.google.internal",
}

BLOCKED_SUFFIXES = (".local", ".internal", ".localhost")

ALLOWED_SCHEMES = {"http", "https"}

DEFAULT_PORTS = {"http": 80, "https": 443}

CACHE_KEY_PREFIX = "cleanweb"


def is_ip_blocked(ip_str: str) -> bool:
    """Check if an IP address is in a blocked range."""
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(ip in network for network in BLOCKED_IP_RANGES)


def parse_target(url: str):
    """
    Parse a target URL, requiring an absolute http(s) URL with a host.

    Returns:
        The urllib ParseResult

    Raises:
        URLParseError: If the URL is malformed or not absolute
    """
    if not isinstance(url, str) or not url.strip():
        raise URLParseError(str(url), "URL is empty")

    try:
        parsed = urlparse(url.strip())
        # Accessing .port validates it
        parsed.port
    except ValueError as e:
        raise URLParseError(url, f"Invalid URL format: {e}") from e

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise URLParseError(url, "URL must be absolute and use http or https")

    if not parsed.hostname:
        raise URLParseError(url, "URL must include a hostname")

    return parsed


def normalize_url(url: str) -> str:
    """
    Normalize a URL for use as a cache key.

    Lowercases scheme and host, drops default ports and the fragment, and
    keeps path and query as given.
    """
    parsed = parse_target(url)
    scheme = parsed.scheme.lower()
    host = parsed.hostname.lower()
    if ":" in host:
        host = f"[{host}]"

    netloc = host
    if parsed.port and parsed.port != DEFAULT_PORTS[scheme]:
        netloc = f"{host}:{parsed.port}"
    if parsed.username:
        userinfo = parsed.username
        if parsed.password:
            userinfo = f"{userinfo}:{parsed.password}"
        netloc = f"{userinfo}@{netloc}"

    return urlunparse((scheme, netloc, parsed.path or "/", parsed.params, parsed.query, ""))


def cache_key(url: str, format_markdown: bool) -> str:
    """Cache key for a (target, output format) pair."""
    return f"{CACHE_KEY_PREFIX}:{normalize_url(url)}:{str(bool(format_markdown)).lower()}"


def validate_public_url(url: str, resolve_dns: bool = True) -> str:
    """
    Validate that a URL does not target internal network resources.

    Args:
        url: The URL to validate
        resolve_dns: Whether to resolve DNS and check the resulting addresses

    Returns:
        The URL unchanged

    Raises:
        URLParseError: If the URL is malformed
        BlockedURLError: If the URL targets a blocked host or address
    """
    parsed = parse_target(url)
    hostname = parsed.hostname.lower()

    if hostname in BLOCKED_HOSTNAMES:
        raise BlockedURLError(url, f"Access to '{hostname}' is not allowed")

    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        if hostname.endswith(BLOCKED_SUFFIXES):
            raise BlockedURLError(url, f"Access to '{hostname}' is not allowed")
    else:
        if is_ip_blocked(str(ip)):
            raise BlockedURLError(url, f"Access to IP address '{ip}' is not allowed")

    if resolve_dns:
        try:
            addrinfo = socket.getaddrinfo(
                hostname,
                parsed.port or DEFAULT_PORTS[parsed.scheme.lower()],
                proto=socket.IPPROTO_TCP,
            )
        except socket.gaierror:
            # DNS failure surfaces as a NetworkError at fetch time
            return url
        for _, _, _, _, sockaddr in addrinfo:
            if is_ip_blocked(sockaddr[0]):
                raise BlockedURLError(
                    url, f"Hostname '{hostname}' resolves to blocked IP address '{sockaddr[0]}'"
                )

    return url
