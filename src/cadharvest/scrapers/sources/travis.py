"""
Travis CAD Adapter

Travis Central Appraisal District serves property pages only to a PHP
session established on the homepage.
"""
import threading
from typing import Optional

from config.settings import settings
from src.cadharvest.models.property_record import CanonicalPropertyRecord
from src.cadharvest.models.raw import RawDocument, RawFields, SearchPage
from src.cadharvest.scrapers.base import SessionAdapter, first_label_value, to_int
from src.cadharvest.scrapers.fetcher import ensure_parseable
from src.cadharvest.scrapers.html import find_section_tables, parse_html, parse_search_rows, table_rows
from src.cadharvest.utils.logger import get_logger

logger = get_logger(__name__)


class TravisCADAdapter(SessionAdapter):
    """Session-based adapter for the Travis CAD property search."""

    source_id = "traviscad"
    county = "Travis"
    default_city = "Austin"
    default_base_url = settings.travis_cad_base_url
    cookie_names = ("PHPSESSID", "JSESSIONID", "session_id")

    def detail_url(self, identifier: str) -> str:
        if identifier.startswith("http"):
            return identifier
        return f"{self.base_url}/property/{identifier}"

    def search(
        self,
        query: str,
        search_type: str = "address",
        page: int = 1,
        cancel_event: Optional[threading.Event] = None,
    ) -> SearchPage:
        self._check_search_type(search_type)
        params = {"address": query} if search_type == "address" else {"parcel": query}
        if page > 1:
            params["page"] = str(page)

        document = ensure_parseable(
            self._request(f"{self.base_url}/property-search", cancel_event, params=params)
        )
        results = parse_search_rows(parse_html(document.content), r"/property/([\w-]+)", self.base_url)
        logger.info("search_completed", source=self.source_id, search_type=search_type,
                    results=len(results.results))
        return results

    def parse_details(self, document: RawDocument) -> RawFields:
        soup, raw = self.parse_common_fields(document)
        raw.update({
            "acreage": first_label_value(soup, ("Acreage", "Acres")),
            "square_feet": first_label_value(soup, ("Living Area", "Square Feet", "Sq Ft")),
            "year_built": first_label_value(soup, ("Year Built",)),
            "land_use": first_label_value(soup, ("Land Use", "State Code")),
        })

        exemptions = []
        for table in find_section_tables(soup, ("exemption",)):
            for cells in table_rows(table):
                if cells and cells[0]:
                    exemptions.append({
                        "type": cells[0],
                        "value": cells[1] if len(cells) > 1 else "0",
                        "description": cells[2] if len(cells) > 2 else "",
                    })
        raw["exemptions"] = exemptions
        return raw

    def normalize(self, raw: RawFields) -> CanonicalPropertyRecord:
        data = self.normalize_common(raw)
        data["square_feet"] = to_int(raw.get("square_feet"))
        data["year_built"] = to_int(raw.get("year_built"))
        return self.build_record(data)
