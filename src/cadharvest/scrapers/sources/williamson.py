"""
Williamson CAD Adapter

Williamson Central Appraisal District runs on ASP.NET and requires its
session cookie. Detail pages include deed history (from which the
ownership chain is built), zoning and water rights.
"""
import threading
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from config.settings import settings
from src.cadharvest.models.property_record import (
    CanonicalPropertyRecord,
    DeedRecord,
    Utilities,
    WaterRights,
)
from src.cadharvest.models.raw import RawDocument, RawFields, SearchPage
from src.cadharvest.scrapers.base import SessionAdapter, first_label_value, to_int
from src.cadharvest.scrapers.fetcher import ensure_parseable
from src.cadharvest.scrapers.html import (
    extract_table_value,
    find_section_tables,
    parse_html,
    parse_search_rows,
    table_rows,
)
from src.cadharvest.transformers.normalization import normalize_zoning
from src.cadharvest.transformers.tax_assessor import build_ownership_chain
from src.cadharvest.utils.logger import get_logger

logger = get_logger(__name__)


def parse_deed_history(soup: BeautifulSoup) -> List[Dict[str, str]]:
    """
    Rows of deed/ownership/transfer history tables.

    Columns: date, grantor, grantee, instrument type, book/page.
    """
    deeds = []
    for table in find_section_tables(soup, ("deed", "ownership", "transfer", "history")):
        for cells in table_rows(table):
            if len(cells) < 2:
                continue

            def cell(index: int) -> str:
                return cells[index] if len(cells) > index else ""

            if not (cell(0) or cell(1) or cell(2)):
                continue
            deeds.append({
                "date": cell(0),
                "grantor": cell(1),
                "grantee": cell(2),
                "instrument_type": cell(3),
                "book_page": cell(4),
            })
    return deeds


def parse_water_rights(soup: BeautifulSoup) -> Optional[Dict[str, Any]]:
    description = extract_table_value(soup, "Water Rights")
    water_source = extract_table_value(soup, "Water Source")
    well_permit = extract_table_value(soup, "Well Permit")
    water_district = extract_table_value(soup, "Water District")

    if not (description or water_source or well_permit or water_district):
        return None
    return {
        "has_water_rights": "yes" in description.lower() or bool(water_source) or bool(well_permit),
        "water_source": water_source,
        "well_permit": well_permit,
        "water_district": water_district,
        "description": description,
    }


class WilliamsonCADAdapter(SessionAdapter):
    """Session-based, structured-extraction adapter for www.wcad.org."""

    source_id = "williamsoncad"
    county = "Williamson"
    default_city = "Georgetown"
    default_base_url = settings.williamson_cad_base_url
    cookie_names = ("ASP.NET_SessionId", "JSESSIONID", "session_id", "SessionId")

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
            "zoning": first_label_value(soup, ("Zoning", "Zoning District")),
            "land_use": first_label_value(soup, ("Land Use", "Use Code")),
            "square_feet": first_label_value(soup, ("Living Area", "Square Feet")),
            "year_built": first_label_value(soup, ("Year Built",)),
            "deed_history": parse_deed_history(soup),
            "water_rights": parse_water_rights(soup),
        })
        return raw

    def normalize(self, raw: RawFields) -> CanonicalPropertyRecord:
        data = self.normalize_common(raw)

        deeds = [DeedRecord(**deed) for deed in raw.get("deed_history") or []]
        water = raw.get("water_rights")
        water_rights = WaterRights(**water) if water else None

        data.update({
            "square_feet": to_int(raw.get("square_feet")),
            "year_built": to_int(raw.get("year_built")),
            "zoning": normalize_zoning(raw.get("zoning")),
            "deed_history": deeds,
            "ownership_chain": build_ownership_chain(deeds),
            "water_rights": water_rights,
            "utilities": Utilities(water="yes" if water_rights and water_rights.has_water_rights else None),
        })
        return self.build_record(data)
