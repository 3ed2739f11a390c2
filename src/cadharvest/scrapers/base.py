"""
Source Adapter Base Classes

Every appraisal-district adapter searches, fetches and parses pages, then
normalizes the parsed fields into a CanonicalPropertyRecord. Rate limiting
and retries are composed in through the injected RateLimiter and
RetryableFetcher; session handling through a SessionManager.
"""
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bs4 import BeautifulSoup
from pydantic import ValidationError

from config.settings import settings
from src.cadharvest.models.property_record import (
    CanonicalPropertyRecord,
    PropertyType,
)
from src.cadharvest.models.raw import RawDocument, RawFields, SearchPage
from src.cadharvest.scrapers.errors import ClientError, ParseError, PropertyNotFoundError, SessionExpiredError
from src.cadharvest.scrapers.fetcher import RetryableFetcher, ensure_parseable
from src.cadharvest.scrapers.html import (
    extract_table_value,
    find_section_tables,
    parse_html,
    table_headers,
    table_rows,
)
from src.cadharvest.scrapers.rate_limiter import RateLimiter
from src.cadharvest.scrapers.session import SessionManager
from src.cadharvest.transformers.normalization import (
    calculate_derived_fields,
    normalize_acreage,
    normalize_address,
    normalize_price,
    normalize_status,
)
from src.cadharvest.transformers.tax_assessor import (
    SESSION_COOKIE_NAMES,
    calculate_total_taxes,
    extract_numeric_value,
    normalize_parcel_id,
    parse_address_components,
    parse_exemptions,
    parse_owner_name,
    parse_tax_units,
    sanitize_raw_fields,
)
from src.cadharvest.utils.logger import get_logger

logger = get_logger(__name__)

SEARCH_TYPES = ("address", "parcel_id")

# Labels shared by the detail pages of all three districts
COMMON_LABELS = {
    "parcel_id": ("Parcel ID", "Geographic ID"),
    "property_id": ("Property ID",),
    "owner_name": ("Owner Name", "Owner"),
    "owner_address": ("Owner Address", "Mailing Address"),
    "property_address": ("Property Address", "Situs Address"),
    "city": ("City",),
    "zip_code": ("Zip Code", "Zip"),
    "land_value": ("Land Value",),
    "improvement_value": ("Improvement Value",),
    "market_value": ("Market Value",),
    "assessed_value": ("Assessed Value",),
    "appraised_value": ("Appraised Value",),
    "taxable_value": ("Taxable Value",),
    "total_taxes": ("Total Taxes", "Estimated Taxes"),
    "legal_description": ("Legal Description",),
}


def to_int(value: Any) -> Optional[int]:
    """Integer from text such as "2,400 sq ft"; None when nothing parses."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    number = extract_numeric_value(value, "integer")
    return int(number) if number else None


def first_label_value(soup: BeautifulSoup, labels: Iterable[str]) -> str:
    for label in labels:
        value = extract_table_value(soup, label)
        if value:
            return value
    return ""


def parse_tax_unit_tables(soup: BeautifulSoup) -> List[Dict[str, str]]:
    """
    Rows of taxing-jurisdiction tables keyed by column role.

    Columns are matched by header: entity/jurisdiction/unit -> name,
    rate -> rate, taxable -> taxable_value, tax/amount -> amount.
    """
    units = []
    for table in find_section_tables(soup, ("taxing", "jurisdiction", "tax unit")):
        headers = table_headers(table)

        def column(*keywords: str) -> Optional[int]:
            for index, header in enumerate(headers):
                if any(keyword in header for keyword in keywords):
                    return index
            return None

        name_col = column("entity", "jurisdiction", "unit", "taxing")
        rate_col = column("rate")
        taxable_col = column("taxable")
        amount_col = next(
            (i for i, h in enumerate(headers)
             if ("tax" in h or "amount" in h) and i not in (name_col, rate_col, taxable_col)),
            None,
        )

        for cells in table_rows(table):
            def cell(index: Optional[int]) -> str:
                return cells[index] if index is not None and index < len(cells) else ""

            if not cell(name_col):
                continue
            units.append({
                "name": cell(name_col),
                "rate": cell(rate_col),
                "taxable_value": cell(taxable_col),
                "amount": cell(amount_col),
            })
    return units


class SourceAdapter(ABC):
    """
    Base class for appraisal-district adapters.

    Subclasses set the class attributes and implement search, detail_url,
    parse_details and normalize.

    Attributes:
        source_id: Registry identifier ("hayscad")
        county: County name used for the parcel ID and address
        default_city: City assumed when the page has none
    """

    source_id: str = ""
    county: str = ""
    default_city: str = ""
    default_base_url: str = ""

    def __init__(
        self,
        fetcher: Optional[RetryableFetcher] = None,
        rate_limiter: Optional[RateLimiter] = None,
        base_url: Optional[str] = None,
        tax_year: Optional[int] = None,
    ):
        """
        Initialize the adapter.

        Args:
            fetcher: Shared fetcher (a new RetryableFetcher by default)
            rate_limiter: Shared limiter; pass the pipeline's instance so all
                adapters for a domain draw from one budget
            base_url: Override the site URL (for testing)
            tax_year: Year used in canonical parcel IDs
        """
        self.fetcher = fetcher or RetryableFetcher()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.domain = RateLimiter.get_domain(self.base_url)
        self.tax_year = tax_year or settings.tax_year
        logger.info("source_adapter_initialized", source=self.source_id, base_url=self.base_url)

    # Network

    def _fetch(self, url: str, cancel_event: Optional[threading.Event] = None, **kwargs) -> RawDocument:
        """Rate-limited fetch: acquire a slot for the domain, then fetch."""
        self.rate_limiter.acquire(self.domain, cancel_event)
        return self.fetcher.fetch(url, cancel_event=cancel_event, **kwargs)

    def _request(self, url: str, cancel_event: Optional[threading.Event] = None, **kwargs) -> RawDocument:
        return self._fetch(url, cancel_event, **kwargs)

    # Search

    @abstractmethod
    def search(
        self,
        query: str,
        search_type: str = "address",
        page: int = 1,
        cancel_event: Optional[threading.Event] = None,
    ) -> SearchPage:
        """Search the site by address or parcel ID."""

    def search_by_address(self, address: str, page: int = 1,
                          cancel_event: Optional[threading.Event] = None) -> SearchPage:
        return self.search(address, "address", page, cancel_event)

    def search_by_parcel_id(self, parcel_id: str,
                            cancel_event: Optional[threading.Event] = None) -> SearchPage:
        return self.search(parcel_id, "parcel_id", 1, cancel_event)

    @staticmethod
    def _check_search_type(search_type: str) -> None:
        if search_type not in SEARCH_TYPES:
            raise ValueError(f"Unsupported search type: {search_type}. Use one of {', '.join(SEARCH_TYPES)}")

    # Details

    @abstractmethod
    def detail_url(self, identifier: str) -> str:
        """Detail page URL for a property ID (absolute URLs pass through)."""

    def get_details(self, identifier: str, cancel_event: Optional[threading.Event] = None) -> RawFields:
        """
        Fetch and parse a property detail page.

        Raises:
            PropertyNotFoundError: The source answered 404
            FetchError: Fetch failed after retries
            ParseError: Page is not a property detail page
        """
        try:
            document = self._request(self.detail_url(str(identifier)), cancel_event)
        except ClientError as e:
            if e.status != 404:
                raise
            logger.info("property_not_found", source=self.source_id, identifier=identifier)
            raise PropertyNotFoundError(self.source_id, str(identifier)) from e
        return self.parse_details(ensure_parseable(document))

    @abstractmethod
    def parse_details(self, document: RawDocument) -> RawFields:
        """Extract source-specific raw fields from a detail page."""

    def parse_common_fields(self, document: RawDocument) -> Tuple[BeautifulSoup, RawFields]:
        """
        Parse the labels every district publishes.

        Raises:
            ParseError: If neither a parcel ID nor a property ID is present
        """
        soup = parse_html(document.content)
        raw: RawFields = {
            field: first_label_value(soup, labels) for field, labels in COMMON_LABELS.items()
        }
        if not raw["parcel_id"] and not raw["property_id"]:
            raise ParseError("Detail page has no parcel or property ID", source_url=document.source_url)
        if not raw["parcel_id"]:
            raw["parcel_id"] = raw["property_id"]

        raw["tax_units"] = parse_tax_unit_tables(soup)
        raw["source_url"] = document.source_url
        raw["fetched_at"] = document.fetched_at
        return soup, raw

    # Normalization

    @abstractmethod
    def normalize(self, raw: RawFields) -> CanonicalPropertyRecord:
        """Map raw fields onto the canonical schema."""

    def normalize_common(self, raw: RawFields) -> Dict[str, Any]:
        """Canonical fields shared by all districts, as keyword arguments."""
        owner = parse_owner_name(raw.get("owner_name"))
        owner.address = raw.get("owner_address") or ""
        mailing = parse_address_components(owner.address)
        owner.mailing_street = mailing["street"]
        owner.mailing_city = mailing["city"]
        owner.mailing_state = mailing["state"]
        owner.mailing_zip_code = mailing["zip_code"]

        tax_units = parse_tax_units(raw.get("tax_units") or [])
        annual_taxes = normalize_price(raw.get("total_taxes")) or calculate_total_taxes(tax_units)

        source_parcel_id = str(raw.get("parcel_id") or "")
        return {
            "source": self.source_id,
            "source_parcel_id": source_parcel_id,
            "parcel_id": normalize_parcel_id(source_parcel_id, self.county, self.tax_year),
            "source_url": raw.get("source_url"),
            "property_type": PropertyType.LAND,
            "status": normalize_status("active"),
            "address": normalize_address({
                "street": raw.get("property_address"),
                "city": raw.get("city") or self.default_city,
                "county": self.county,
                "zip_code": raw.get("zip_code"),
            }),
            "price": normalize_price(raw.get("market_value") or raw.get("appraised_value")),
            "assessed_value": normalize_price(raw.get("assessed_value") or raw.get("appraised_value")) or None,
            "taxable_value": normalize_price(raw.get("taxable_value")) or None,
            "land_value": normalize_price(raw.get("land_value")) or None,
            "improvement_value": normalize_price(raw.get("improvement_value")) or None,
            "acreage": normalize_acreage(raw.get("acreage")) or None,
            "land_use": raw.get("land_use") or "",
            "legal_description": raw.get("legal_description") or "",
            "owner": owner,
            "taxes": {
                "annual": annual_taxes,
                "exemptions": parse_exemptions(raw.get("exemptions") or []),
                "units": tax_units,
            },
            "listing_date": raw.get("fetched_at"),
        }

    @staticmethod
    def build_record(data: Dict[str, Any]) -> CanonicalPropertyRecord:
        """Validate the assembled fields and fill in the derived ones."""
        record = CanonicalPropertyRecord(**data)
        for name, value in calculate_derived_fields(record).items():
            setattr(record, name, round(value, 2))
        return record

    # Orchestration

    def scrape(self, identifier: str, cancel_event: Optional[threading.Event] = None) -> CanonicalPropertyRecord:
        """
        Fetch, parse and normalize one property.

        Raises:
            FetchError, SessionExpiredError, CancelledError: From the fetch
            PropertyNotFoundError: The source has no page for identifier
            ParseError: Page or parsed fields do not fit the canonical schema
        """
        raw = self.get_details(identifier, cancel_event)
        sanitized, warnings = sanitize_raw_fields(raw)
        if warnings:
            logger.warning("raw_fields_sanitized", source=self.source_id, identifier=identifier, warnings=warnings)

        try:
            record = self.normalize(sanitized)
        except ValidationError as e:
            raise ParseError(
                f"Parsed fields do not fit the property schema: {e.error_count()} errors",
                source_url=sanitized.get("source_url"),
            ) from e

        logger.info(
            "property_scraped",
            source=self.source_id,
            identifier=identifier,
            parcel_id=record.parcel_id,
        )
        return record


class SessionAdapter(SourceAdapter):
    """
    Adapter for sites that only serve property pages to a cookie session.

    The first request performs a homepage handshake. A 401/403 invalidates
    the session, refreshes it once and repeats the failed request once; a
    second rejection raises SessionExpiredError.
    """

    cookie_names: Tuple[str, ...] = SESSION_COOKIE_NAMES
    rejected_statuses = (401, 403)

    def __init__(self, *args, session_manager: Optional[SessionManager] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.sessions = session_manager or SessionManager(self._handshake, self.cookie_names)

    def _handshake(self, cancel_event: Optional[threading.Event] = None) -> RawDocument:
        return self._fetch(self.base_url + "/", cancel_event)

    def ensure_session(self, cancel_event: Optional[threading.Event] = None):
        return self.sessions.ensure_session(cancel_event)

    def _send(self, url, state, cancel_event, headers=None, **kwargs) -> RawDocument:
        merged = dict(headers or {})
        merged.update(SessionManager.cookie_header(state))
        return self._fetch(url, cancel_event, headers=merged, **kwargs)

    def _request(self, url: str, cancel_event: Optional[threading.Event] = None, **kwargs) -> RawDocument:
        headers = kwargs.pop("headers", None)
        state = self.ensure_session(cancel_event)
        try:
            return self._send(url, state, cancel_event, headers, **kwargs)
        except ClientError as e:
            if e.status not in self.rejected_statuses:
                raise
            logger.warning("session_rejected", source=self.source_id, url=url, status=e.status)

        self.sessions.invalidate(state.token)
        state = self.ensure_session(cancel_event)
        try:
            return self._send(url, state, cancel_event, headers, **kwargs)
        except ClientError as e:
            if e.status not in self.rejected_statuses:
                raise
            logger.error("session_expired", source=self.source_id, url=url, status=e.status)
            raise SessionExpiredError(
                f"Session rejected after refresh: HTTP {e.status}", url=url, status=e.status
            ) from e
