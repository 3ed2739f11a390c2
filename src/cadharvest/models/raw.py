"""
Raw Scrape Models

Transient structures produced inside a single adapter call: the fetched
document, the source-specific field mapping parsed out of it, and search
result rows.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

RawFields = Dict[str, Any]


@dataclass
class RawDocument:
    """
    Fetched payload plus the metadata needed to parse it.

    Attributes:
        content: Response body as text (HTML, JSON or plain text)
        source_url: URL the document was fetched from
        status_code: HTTP status of the response
        headers: Response headers with lower-cased names
        fetched_at: UTC timestamp of the fetch
    """
    content: str
    source_url: str
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)


@dataclass
class SearchResult:
    """One row of a property search results page."""
    property_id: str = ""
    parcel_id: str = ""
    address: str = ""
    owner: str = ""
    detail_url: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "property_id": self.property_id,
            "parcel_id": self.parcel_id,
            "address": self.address,
            "owner": self.owner,
            "detail_url": self.detail_url,
        }


@dataclass
class SearchPage:
    """Search results plus pagination info for paged sources."""
    results: List[SearchResult] = field(default_factory=list)
    current_page: int = 1
    total_pages: int = 1
    total_results: int = 0

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages
