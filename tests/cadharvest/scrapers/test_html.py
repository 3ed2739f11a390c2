"""
Unit tests for HTML extraction helpers
"""
from src.cadharvest.scrapers.html import (
    clean_text,
    extract_table_value,
    extract_text,
    find_section_tables,
    parse_html,
    parse_pagination,
    parse_search_rows,
    table_headers,
    table_rows,
)

DETAIL_PAGE = """
<html><body>
<h1 class="title">  Property
   Details </h1>
<table>
  <tr><th>Owner</th><td>SMITH, JOHN</td></tr>
  <tr><th>Owner Address</th><td>PO BOX 1, KYLE, TX 78640</td></tr>
  <tr><td>Market Value:</td><td>$450,000</td></tr>
</table>
<dl><dt>Zoning</dt><dd>AG-1</dd></dl>
<div><label>Legal Description</label><span>LOT 4 BLK B</span></div>
<table>
  <caption>Improvements</caption>
  <tr><td>Barn</td><td>1,200</td></tr>
</table>
<table>
  <thead><tr><th>Taxing Entity</th><th>Rate</th></tr></thead>
  <tbody><tr><td>Hays County</td><td>0.37</td></tr></tbody>
</table>
</body></html>
"""

SEARCH_PAGE = """
<html><body>
<p>Showing 1,234 results. Page 2 of 62</p>
<table>
  <thead><tr><th>Property ID</th><th>Owner Name</th><th>Property Address</th><th>Geo ID</th></tr></thead>
  <tbody>
    <tr><td><a href="/Property/View/101">101</a></td><td>SMITH, JOHN</td><td>1 MAIN ST</td><td>11-22</td></tr>
    <tr><td><a href="/Property/View/102">102</a></td><td>DOE, JANE</td><td>2 MAIN ST</td><td>11-23</td></tr>
    <tr><td><a href="/Property/View/102">again</a></td><td></td><td></td><td></td></tr>
  </tbody>
</table>
<a href="/help">Help</a>
</body></html>
"""


class TestTextHelpers:
    """Tests for text cleanup"""

    def test_clean_text(self):
        assert clean_text("  a \n  b\t c ") == "a b c"
        assert clean_text(None) == ""

    def test_extract_text(self):
        soup = parse_html(DETAIL_PAGE)
        assert extract_text(soup, "h1.title") == "Property Details"
        assert extract_text(soup, "h2") == ""
        assert extract_text(None) == ""


class TestExtractTableValue:
    """Tests for label-driven lookups"""

    def test_exact_label_beats_partial(self):
        soup = parse_html(DETAIL_PAGE)
        assert extract_table_value(soup, "Owner") == "SMITH, JOHN"
        assert extract_table_value(soup, "Owner Address") == "PO BOX 1, KYLE, TX 78640"

    def test_label_with_colon(self):
        assert extract_table_value(parse_html(DETAIL_PAGE), "Market Value") == "$450,000"

    def test_definition_list_and_label(self):
        soup = parse_html(DETAIL_PAGE)
        assert extract_table_value(soup, "Zoning") == "AG-1"
        assert extract_table_value(soup, "Legal Description") == "LOT 4 BLK B"

    def test_missing_label(self):
        assert extract_table_value(parse_html(DETAIL_PAGE), "Year Built") == ""


class TestSectionTables:
    """Tests for section table discovery"""

    def test_by_caption(self):
        tables = find_section_tables(parse_html(DETAIL_PAGE), ["improvement"])
        assert len(tables) == 1
        assert table_rows(tables[0]) == [["Barn", "1,200"]]

    def test_by_header(self):
        tables = find_section_tables(parse_html(DETAIL_PAGE), ["taxing"])
        assert len(tables) == 1
        assert table_headers(tables[0]) == ["taxing entity", "rate"]
        assert table_rows(tables[0]) == [["Hays County", "0.37"]]

    def test_label_value_tables_have_no_header(self):
        assert find_section_tables(parse_html(DETAIL_PAGE), ["owner"]) == []


class TestSearchRows:
    """Tests for search result parsing"""

    def test_pagination(self):
        info = parse_pagination(parse_html(SEARCH_PAGE))
        assert info == {"current_page": 2, "total_pages": 62, "total_results": 1234}

    def test_rows(self):
        page = parse_search_rows(parse_html(SEARCH_PAGE), r"/Property/View/(\d+)", "https://esearch.hayscad.com")

        assert [r.property_id for r in page.results] == ["101", "102"]
        first = page.results[0]
        assert first.detail_url == "https://esearch.hayscad.com/Property/View/101"
        assert first.owner == "SMITH, JOHN"
        assert first.address == "1 MAIN ST"
        assert first.parcel_id == "11-22"
        assert page.has_next
        assert page.total_results == 1234

    def test_no_results(self):
        page = parse_search_rows(parse_html("<p>No records</p>"), r"/Property/View/(\d+)", "https://x.test")
        assert page.results == []
        assert page.total_results == 0
        assert not page.has_next
