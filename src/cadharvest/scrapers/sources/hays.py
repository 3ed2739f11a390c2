"""
Hays CAD Adapter

Hays Central Appraisal District publishes properties under sequential
numeric IDs at /Property/View/{id} and needs no session. Detail pages carry
improvement tables, agricultural exemptions and wildlife management data.
"""
import threading
from typing import Any, Dict, Iterator, List, Optional

from bs4 import BeautifulSoup

from config.settings import settings
from src.cadharvest.models.property_record import (
    CanonicalPropertyRecord,
    Exemption,
    Improvement,
    WildlifeManagement,
)
from src.cadharvest.models.raw import RawDocument, RawFields, SearchPage
from src.cadharvest.scrapers.base import SourceAdapter, first_label_value, to_int
from src.cadharvest.scrapers.fetcher import ensure_parseable
from src.cadharvest.scrapers.html import (
    extract_table_value,
    find_section_tables,
    parse_html,
    parse_search_rows,
    table_rows,
)
from src.cadharvest.transformers.normalization import normalize_acreage, normalize_price
from src.cadharvest.transformers.tax_assessor import (
    calculate_total_square_feet,
    classify_property_type,
)
from src.cadharvest.utils.logger import get_logger

logger = get_logger(__name__)

MISSING_PROPERTY_STATUSES = (301, 302, 404)


def parse_agricultural_exemptions(soup: BeautifulSoup) -> List[Dict[str, Any]]:
    """Type/value rows of exemption or agricultural tables."""
    exemptions = []
    for table in find_section_tables(soup, ("exemption", "agricultur")):
        for cells in table_rows(table):
            if len(cells) < 2 or not cells[0] or not cells[1]:
                continue
            exemptions.append({"type": cells[0], "value": normalize_price(cells[1])})
    return exemptions


def parse_wildlife_management(soup: BeautifulSoup) -> Optional[Dict[str, Any]]:
    description = extract_table_value(soup, "Wildlife Management")
    acres = extract_table_value(soup, "Wildlife Acres")
    value = extract_table_value(soup, "Wildlife Value")
    if not (description or acres or value):
        return None
    return {
        "has_wildlife_management": "yes" in description.lower() or bool(acres),
        "acres": normalize_acreage(acres),
        "value": normalize_price(value),
        "description": description,
    }


def parse_improvements(soup: BeautifulSoup) -> List[Dict[str, Any]]:
    """
    Rows of improvement/building/structure tables.

    Columns: type, square feet, year built (optional), condition (optional).
    """
    improvements = []
    for table in find_section_tables(soup, ("improvement", "building", "structure")):
        for cells in table_rows(table):
            if len(cells) < 2 or not cells[0]:
                continue
            improvements.append({
                "type": cells[0],
                "square_feet": to_int(cells[1]) or 0,
                "year_built": to_int(cells[2]) if len(cells) > 2 else None,
                "condition": cells[3] if len(cells) > 3 else "",
            })
    return improvements


class HaysCADAdapter(SourceAdapter):
    """
    Sequential-ID adapter for esearch.hayscad.com.

    Existence is probed without following redirects: 404 or a 301/302
    redirect means the ID is unassigned.
    """

    source_id = "hayscad"
    county = "Hays"
    default_city = "San Marcos"
    default_base_url = settings.hays_cad_base_url

    def detail_url(self, identifier: str) -> str:
        if identifier.startswith("http"):
            return identifier
        return f"{self.base_url}/Property/View/{identifier}"

    def probe_property_id(
        self,
        property_id: Any,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[str]:
        """
        Check whether a sequential property ID exists.

        Returns:
            Detail URL when the page exists, None on 404 or 301/302

        Raises:
            FetchError: Any other failure after retries
        """
        url = self.detail_url(str(property_id))
        document = self._request(
            url,
            cancel_event,
            allow_redirects=False,
            accept_status=MISSING_PROPERTY_STATUSES,
        )
        if document.status_code in MISSING_PROPERTY_STATUSES:
            logger.info("property_id_not_found", source=self.source_id, property_id=property_id,
                        status=document.status_code)
            return None

        logger.debug("property_id_found", source=self.source_id, property_id=property_id)
        return url

    def search(
        self,
        query: str,
        search_type: str = "address",
        page: int = 1,
        cancel_event: Optional[threading.Event] = None,
    ) -> SearchPage:
        self._check_search_type(search_type)
        if search_type == "address":
            params = {"Address": query, "Page": str(page)}
        else:
            params = {"ParcelID": query}

        document = ensure_parseable(
            self._request(f"{self.base_url}/Property/PropertySearch", cancel_event, params=params)
        )
        results = parse_search_rows(parse_html(document.content), r"/Property/View/(\d+)", self.base_url)

        logger.info(
            "search_completed",
            source=self.source_id,
            search_type=search_type,
            results=len(results.results),
            current_page=results.current_page,
            total_pages=results.total_pages,
        )
        return results

    def iter_address_results(
        self,
        address: str,
        max_pages: int = 10,
        cancel_event: Optional[threading.Event] = None,
    ) -> Iterator[SearchPage]:
        """Yield successive address-search pages until the last (or max_pages)."""
        page = 1
        while page <= max_pages:
            results = self.search_by_address(address, page, cancel_event)
            yield results
            if not results.has_next:
                break
            page += 1

    def parse_details(self, document: RawDocument) -> RawFields:
        soup, raw = self.parse_common_fields(document)
        raw.update({
            "acreage": first_label_value(soup, ("Acreage", "Acres")),
            "land_use": first_label_value(soup, ("Land Use", "State Code")),
            "agricultural_exemptions": parse_agricultural_exemptions(soup),
            "wildlife_management": parse_wildlife_management(soup),
            "improvements": parse_improvements(soup),
        })
        raw["exemptions"] = raw["agricultural_exemptions"]
        return raw

    def normalize(self, raw: RawFields) -> CanonicalPropertyRecord:
        data = self.normalize_common(raw)

        improvements = [Improvement(**item) for item in raw.get("improvements") or []]
        data["improvements"] = improvements
        data["total_square_feet"] = calculate_total_square_feet(improvements) or None
        if improvements:
            # Main structure is listed first
            data["square_feet"] = improvements[0].square_feet or None
            data["year_built"] = improvements[0].year_built
        data["property_type"] = classify_property_type(improvements, data["acreage"])

        data["agricultural_exemptions"] = [
            Exemption(type=item["type"], value=item.get("value") or 0.0)
            for item in raw.get("agricultural_exemptions") or []
        ]
        wildlife = raw.get("wildlife_management")
        data["wildlife_management"] = WildlifeManagement(**wildlife) if wildlife else None

        return self.build_record(data)
