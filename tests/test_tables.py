"""Tests for table pagination and header repetition."""

import pytest

from wordtemplate.operations.tables import PAGE_BREAK_XML, TablePageBreaker, find_tables
from wordtemplate.schemas import OperationsConfig


def row(text="x", props=""):
    return f"<w:tr>{props}<w:tc><w:p><w:r><w:t>{text}</w:t></w:r></w:p></w:tc></w:tr>"


def table(rows):
    return "<w:tbl><w:tblPr/><w:tblGrid/>" + "".join(rows) + "</w:tbl>"


def document(*tables):
    return "<w:body><w:p/>" + "<w:p/>".join(tables) + "</w:body>"


@pytest.fixture
def breaker():
    return TablePageBreaker(long_table_threshold=35)


class TestFindTables:
    """Tests for locating tables and counting rows."""

    def test_counts_rows(self):
        """Each table reports its row count."""
        xml = document(table([row()] * 3), table([row()] * 40))
        tables = find_tables(xml)
        assert [t.row_count for t in tables] == [3, 40]
        assert xml[tables[0].start:tables[0].end].startswith("<w:tbl>")
        assert xml[tables[0].start:tables[0].end].endswith("</w:tbl>")

    def test_nested_table_rows_belong_to_nested_table(self):
        """Rows of a nested table are not counted for the outer one."""
        nested = table([row("inner")] * 5)
        outer = table([row("a"), f"<w:tr><w:tc>{nested}<w:p/></w:tc></w:tr>"])
        tables = find_tables(document(outer))
        assert len(tables) == 1
        assert tables[0].row_count == 2

    def test_no_tables(self):
        """A document without tables yields nothing."""
        assert find_tables("<w:body><w:p/></w:body>") == []


class TestPageBreaking:
    """Tests for page breaks before tables."""

    def test_short_table_gets_break(self, breaker):
        """A short table gets a page break before it."""
        xml = document(table([row()] * 35))
        config = OperationsConfig(table_page_breaking=True, long_table_split=False)
        result = breaker.process_document(xml, config)
        assert result.count(PAGE_BREAK_XML) == 1
        assert result.index(PAGE_BREAK_XML) < result.index("<w:tbl>")
        assert result.index(PAGE_BREAK_XML) + len(PAGE_BREAK_XML) == result.index("<w:tbl>")

    def test_long_table_skipped_without_split(self, breaker):
        """Long tables are left alone unless splitting is on."""
        xml = document(table([row()] * 36))
        config = OperationsConfig(table_page_breaking=True, long_table_split=False)
        assert PAGE_BREAK_XML not in breaker.process_document(xml, config)

    def test_long_table_with_split(self, breaker):
        """Long tables get a break when splitting is on."""
        xml = document(table([row()] * 36))
        config = OperationsConfig(table_page_breaking=True, long_table_split=True)
        assert breaker.process_document(xml, config).count(PAGE_BREAK_XML) == 1

    def test_disabled(self, breaker):
        """Nothing is inserted when page breaking is off."""
        xml = document(table([row()] * 2))
        config = OperationsConfig(table_page_breaking=False, repeat_table_header=True)
        assert breaker.process_document(xml, config) == xml

    def test_rows_are_kept_together(self, breaker):
        """Broken tables keep their rows together."""
        xml = document(table([row("a"), row("b"), row("c")]))
        result = breaker.process_document(xml, OperationsConfig(table_page_breaking=True))
        assert result.count("<w:cantSplit/>") == 3
        assert result.count("<w:keepNext/>") == 2
        assert "<w:tr><w:trPr><w:cantSplit/></w:trPr><w:tc>" in result

    def test_existing_row_properties_are_extended(self, breaker):
        """Existing row properties gain cantSplit."""
        rows = [
            row("a", "<w:trPr><w:trHeight w:val=\"300\"/></w:trPr>"),
            row("b", "<w:trPr/>"),
            row("c", "<w:trPr><w:cantSplit/></w:trPr>"),
        ]
        result = breaker.process_document(document(table(rows)), OperationsConfig(table_page_breaking=True))
        assert '<w:trPr><w:cantSplit/><w:keepNext/><w:trHeight w:val="300"/></w:trPr>' in result
        assert "<w:trPr><w:cantSplit/><w:keepNext/></w:trPr><w:tc><w:p><w:r><w:t>b" in result
        assert "<w:trPr><w:cantSplit/></w:trPr><w:tc><w:p><w:r><w:t>c" in result
        assert result.count("<w:trPr>") == 3

    def test_row_property_exceptions_come_first(self, breaker):
        """cantSplit goes after row property exceptions."""
        rows = [row("a", "<w:tblPrEx><w:tblBorders/></w:tblPrEx>")]
        result = breaker.process_document(document(table(rows)), OperationsConfig(table_page_breaking=True))
        assert "</w:tblPrEx><w:trPr><w:cantSplit/></w:trPr>" in result

    def test_each_table_decided_separately(self, breaker):
        """Each table gets its own decision."""
        xml = document(table([row()] * 2), table([row()] * 50), table([row()] * 10))
        result = breaker.process_document(xml, OperationsConfig(table_page_breaking=True))
        assert result.count(PAGE_BREAK_XML) == 2

    def test_accepts_camel_case_dict(self, breaker):
        """Camel-case dict configs are accepted."""
        xml = document(table([row()] * 2))
        result = breaker.process_document(xml, {"tablePageBreaking": True, "repeatTableHeader": True})
        assert PAGE_BREAK_XML in result


class TestHeaderRepetition:
    """Tests for stripping <w:tblHeader> markers."""

    HEADER_ROWS = [
        row("h1", "<w:trPr><w:tblHeader/></w:trPr>"),
        row("h2", '<w:trPr><w:tblHeader w:val="true" /></w:trPr>'),
        row("h3", "<w:trPr><w:tblHeader></w:tblHeader></w:trPr>"),
        row("h4", '<w:trPr><w:tblHeader w:val="1"></w:tblHeader></w:trPr>'),
    ]

    @pytest.mark.parametrize("repeat", [None, False])
    def test_stripped_by_default(self, breaker, repeat):
        """Header markers are removed by default."""
        xml = document(table(self.HEADER_ROWS))
        result = breaker.process_document(xml, OperationsConfig(repeat_table_header=repeat))
        assert "tblHeader" not in result
        assert result.count("<w:trPr></w:trPr>") == 4

    def test_kept_when_requested(self, breaker):
        """Header markers stay when repetition is requested."""
        xml = document(table(self.HEADER_ROWS))
        assert breaker.process_document(xml, OperationsConfig(repeat_table_header=True)) == xml

    def test_no_config_strips(self, breaker):
        """No config strips header markers."""
        xml = document(table(self.HEADER_ROWS))
        assert "tblHeader" not in breaker.process_document(xml)
