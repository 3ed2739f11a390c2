"""
HTML Extraction Helpers

Label-driven lookups shared by the appraisal-district adapters. Pages are
located by visible labels and table headers rather than fixed CSS paths,
so minor markup changes on the source sites do not break parsing.
"""
import re
from typing import Dict, Iterable, List, Optional, Pattern, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from src.cadharvest.models.raw import SearchPage, SearchResult

_WHITESPACE = re.compile(r"\s+")
_PAGE_OF = re.compile(r"Page\s+(\d+)\s+of\s+(\d+)", re.IGNORECASE)
_RESULT_COUNT = re.compile(r"([\d,]+)\s+(?:results|records|properties)", re.IGNORECASE)

# Search-result header names mapped onto SearchResult attributes
SEARCH_HEADER_ALIASES = {
    "property_id": ("property id", "prop id", "account"),
    "parcel_id": ("parcel id", "parcel", "geo id", "geographic id"),
    "address": ("property address", "situs", "address"),
    "owner": ("owner name", "owner"),
}


def parse_html(content: str) -> BeautifulSoup:
    return BeautifulSoup(content or "", "html.parser")


def clean_text(text: Optional[str]) -> str:
    """Collapse runs of whitespace and trim."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def extract_text(element: Union[Tag, BeautifulSoup, None], selector: Optional[str] = None) -> str:
    """
    Text of an element, or of the first match of selector inside it.

    Returns:
        Cleaned text, or "" when nothing matches
    """
    if element is None:
        return ""
    if selector:
        element = element.select_one(selector)
        if element is None:
            return ""
    return clean_text(element.get_text(" "))


def _label_candidates(elements: List[Tag], label: str) -> List[Tag]:
    """Elements mentioning label, exact matches ("Owner", "Owner:") first."""
    wanted = label.lower()
    exact, partial = [], []
    for element in elements:
        text = clean_text(element.get_text(" ")).lower()
        if text.rstrip(":").strip() == wanted:
            exact.append(element)
        elif wanted in text:
            partial.append(element)
    return exact + partial


def extract_table_value(soup: Union[BeautifulSoup, Tag], label: str) -> str:
    """
    Value paired with a visible label.

    Lookup order:
        1. table row whose th/td holds the label -> last td of that row
        2. dt holding the label -> following dd
        3. <label> element holding the label -> next sibling element

    Within each step a cell equal to the label wins over one that merely
    contains it, so "Owner" does not pick up the "Owner Address" row.

    Returns:
        Cleaned value, or "" when the label is not on the page
    """
    for cell in _label_candidates(soup.find_all(["th", "td"]), label):
        row = cell.find_parent("tr")
        if row is None:
            continue
        cells = row.find_all("td")
        if cells and cells[-1] is not cell:
            return clean_text(cells[-1].get_text(" "))

    for term in _label_candidates(soup.find_all("dt"), label):
        definition = term.find_next_sibling("dd")
        if definition is not None:
            return clean_text(definition.get_text(" "))

    for element in _label_candidates(soup.find_all("label"), label):
        sibling = element.find_next_sibling()
        if sibling is not None:
            return clean_text(sibling.get_text(" "))

    return ""


def _header_cells(table: Tag) -> List[Tag]:
    """
    Column header cells: the thead cells, else the first row when it holds
    only th cells. Label/value tables (th + td per row) have no header.
    """
    thead = table.find("thead")
    if thead is not None:
        return thead.find_all(["th", "td"])
    first_row = table.find("tr")
    if first_row is None:
        return []
    cells = first_row.find_all(["th", "td"])
    if cells and all(cell.name == "th" for cell in cells):
        return cells
    return []


def find_section_tables(soup: Union[BeautifulSoup, Tag], keywords: Iterable[str]) -> List[Tag]:
    """Tables whose column headers (or caption) mention any keyword."""
    keywords = [keyword.lower() for keyword in keywords]
    tables = []
    for table in soup.find_all("table"):
        header_text = " ".join(cell.get_text(" ") for cell in _header_cells(table))
        caption = table.find("caption")
        if caption is not None:
            header_text += " " + caption.get_text(" ")
        if any(keyword in header_text.lower() for keyword in keywords):
            tables.append(table)
    return tables


def table_rows(table: Tag) -> List[List[str]]:
    """Body rows of a table as lists of cell text; header-only rows are skipped."""
    rows = []
    for row in table.find_all("tr"):
        cells = row.find_all("td")
        if cells:
            rows.append([clean_text(cell.get_text(" ")) for cell in cells])
    return rows


def table_headers(table: Tag) -> List[str]:
    return [clean_text(cell.get_text(" ")).lower() for cell in _header_cells(table)]


def _column_index(headers: List[str], aliases: Iterable[str]) -> Optional[int]:
    for alias in aliases:
        for index, header in enumerate(headers):
            if alias in header:
                return index
    return None


def parse_pagination(soup: Union[BeautifulSoup, Tag]) -> Dict[str, int]:
    """Read "Page X of Y" and an optional "N results" count from the page."""
    text = soup.get_text(" ")
    info = {"current_page": 1, "total_pages": 1, "total_results": 0}

    match = _PAGE_OF.search(text)
    if match:
        info["current_page"] = int(match.group(1))
        info["total_pages"] = int(match.group(2))

    count = _RESULT_COUNT.search(text)
    if count:
        info["total_results"] = int(count.group(1).replace(",", ""))
    return info


def parse_search_rows(
    soup: Union[BeautifulSoup, Tag],
    href_pattern: Union[str, Pattern[str]],
    base_url: str,
) -> SearchPage:
    """
    Parse a search results page.

    Rows are the table rows holding a link that matches href_pattern; the
    first capture group of the pattern, when present, is used as the
    property id. Other columns are mapped by header name.

    Args:
        soup: Parsed results page
        href_pattern: Regex matched against link hrefs
        base_url: Base for resolving relative detail links

    Returns:
        SearchPage with results and pagination info
    """
    pattern = re.compile(href_pattern) if isinstance(href_pattern, str) else href_pattern
    results: List[SearchResult] = []
    seen = set()

    for link in soup.find_all("a", href=True):
        match = pattern.search(link["href"])
        if not match:
            continue
        detail_url = urljoin(base_url.rstrip("/") + "/", link["href"])
        if detail_url in seen:
            continue
        seen.add(detail_url)

        result = SearchResult(detail_url=detail_url)
        if match.groups():
            result.property_id = match.group(1)

        row = link.find_parent("tr")
        if row is not None:
            table = row.find_parent("table")
            headers = table_headers(table) if table is not None else []
            cells = [clean_text(cell.get_text(" ")) for cell in row.find_all("td")]
            for attribute, aliases in SEARCH_HEADER_ALIASES.items():
                index = _column_index(headers, aliases)
                if index is not None and index < len(cells) and not getattr(result, attribute):
                    setattr(result, attribute, cells[index])

        if not result.property_id:
            result.property_id = result.parcel_id or clean_text(link.get_text(" "))
        results.append(result)

    pagination = parse_pagination(soup)
    return SearchPage(
        results=results,
        current_page=pagination["current_page"],
        total_pages=pagination["total_pages"],
        total_results=pagination["total_results"] or len(results),
    )
