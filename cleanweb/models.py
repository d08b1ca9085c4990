"""
Data models shared by the fetchers, extractor and parser.
"""

from dataclasses import asdict, dataclass, field, fields
from typing import Any


@dataclass
class Article:
    """Readable article returned to callers and stored in the cache."""
    title: str
    content: str
    byline: str | None = None
    excerpt: str | None = None
    length: int = 0
    site_name: str | None = None

    # Informational, not part of the cache key
    url: str | None = None
    strategy: str | None = None  # "direct", "browser", "markup"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Article":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class ReadableDocument:
    """Extractor output, still holding the parse tree of the content."""
    title: str
    content: str
    byline: str | None = None
    excerpt: str | None = None
    length: int = 0
    site_name: str | None = None
    node: Any = field(default=None, repr=False, compare=False)

    def to_article(self, url: str | None = None, strategy: str | None = None) -> Article:
        """Drop the parse tree and return a cacheable Article."""
        return Article(
            title=self.title,
            content=self.content,
            byline=self.byline,
            excerpt=self.excerpt,
            length=self.length,
            site_name=self.site_name,
            url=url,
            strategy=strategy,
        )


@dataclass
class RetrievalResult:
    """Raw markup produced by a retrieval strategy."""
    url: str
    html: str
    strategy: str  # "direct" or "browser"
    status_code: int | None = None
    final_url: str | None = None
