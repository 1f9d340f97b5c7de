"""Tests for merging placeholders split across runs."""

from wordtemplate.engine.repair import XmlRepair, has_split_placeholder


def run(text, props=""):
    return f"<w:r>{props}<w:t>{text}</w:t></w:r>"


class TestSplitDetection:
    """Tests for run-boundary detection."""

    def test_open_placeholder_at_boundary(self):
        """An opening marker at a run end is a split."""
        assert has_split_placeholder(["Hello ${user.", "name}"])

    def test_dollar_and_brace_in_different_runs(self):
        """A dollar and brace in separate runs is a split."""
        assert has_split_placeholder(["Cost $", "{amount}"])

    def test_complete_placeholders(self):
        """Complete placeholders are not splits."""
        assert not has_split_placeholder(["${a}", " and ${b}"])

    def test_plain_dollar(self):
        """A lone dollar sign is not a split."""
        assert not has_split_placeholder(["$", "5"])


class TestXmlRepair:
    """Tests for paragraph rebuilding."""

    def test_merges_split_placeholder(self):
        """Split runs are merged into the first run."""
        xml = (
            '<w:p><w:pPr><w:pStyle w:val="Body"/><w:rPr><w:i/></w:rPr></w:pPr>'
            + run("Hello ${user.", "<w:rPr><w:b/></w:rPr>")
            + run("name}")
            + "</w:p>"
        )
        assert XmlRepair().repair(xml) == (
            '<w:p><w:pPr><w:pStyle w:val="Body"/><w:rPr><w:i/></w:rPr></w:pPr>'
            '<w:r><w:rPr><w:b/></w:rPr><w:t xml:space="preserve">Hello ${user.name}</w:t></w:r></w:p>'
        )

    def test_untouched_when_not_split(self):
        """Intact paragraphs are left byte for byte."""
        xml = "<w:p>" + run("${a}", "<w:rPr><w:b/></w:rPr>") + run(" and ${b}") + "</w:p>"
        assert XmlRepair().repair(xml) == xml

    def test_no_placeholders(self):
        """Documents without placeholders are returned as is."""
        xml = "<w:p>" + run("plain") + run(" text") + "</w:p>"
        assert XmlRepair().repair(xml) == xml

    def test_keeps_paragraph_attributes(self):
        """Paragraph attributes and properties survive the merge."""
        xml = '<w:p w:rsidR="00AB">' + run("${a.") + run("b}") + "</w:p>"
        repaired = XmlRepair().repair(xml)
        assert repaired.startswith('<w:p w:rsidR="00AB"><w:r>')
        assert "${a.b}" in repaired

    def test_entities_are_preserved(self):
        """Escaped entities stay escaped after merging."""
        xml = "<w:p>" + run("a &amp; ${x.") + run("y}") + "</w:p>"
        assert "a &amp; ${x.y}" in XmlRepair().repair(xml)

    def test_only_innermost_paragraph_is_rebuilt(self):
        """Only the paragraph holding the split is rebuilt."""
        inner = "<w:p>" + run("${a.") + run("b}") + "</w:p>"
        xml = "<w:p><w:r><w:pict><w:txbxContent>" + inner + "</w:txbxContent></w:pict></w:r></w:p>"
        repaired = XmlRepair().repair(xml)
        assert repaired.startswith("<w:p><w:r><w:pict><w:txbxContent><w:p><w:r>")
        assert "${a.b}" in repaired

    def test_spanning_placeholder_outside_paragraph(self):
        """Splits outside a paragraph are left alone."""
        xml = run("${a.") + run("b}")
        assert XmlRepair().repair(xml) == "<w:r><w:t>${a.b}</w:t></w:r>"
