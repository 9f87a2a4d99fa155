"""Tests for Markdown cleaning and paragraph sampling."""

from __future__ import annotations

from docrank.ingestion.markdown import clean_markdown, extract_sampled_text, split_paragraphs


class TestCleanMarkdown:
    """Tests for clean_markdown."""

    def test_strips_markup(self) -> None:
        text = "# Title\n\nSome **bold** text with [a link](http://example.com) ![img](a.png)"
        assert clean_markdown(text) == "Title Some bold text with a link"

    def test_removes_code_fences(self) -> None:
        text = "before\n```python\nx = compute()\n```\nafter"
        assert clean_markdown(text) == "before after"

    def test_removes_list_and_quote_markers(self) -> None:
        text = "- first item\n* second item\n1. third item\n> quoted line"
        assert clean_markdown(text) == "first item second item third item quoted line"

    def test_inline_code_and_italic(self) -> None:
        assert clean_markdown("use `tokenize` for *all* text") == "use tokenize for all text"

    def test_keeps_cjk(self) -> None:
        assert clean_markdown("## 学习笔记！") == "学习笔记"

    def test_empty(self) -> None:
        assert clean_markdown("") == ""


class TestSplitParagraphs:
    def test_drops_short_fragments(self) -> None:
        """Should ignore fragments of five characters or fewer."""
        assert split_paragraphs("ok\n\nA real paragraph.") == ["A real paragraph."]

    def test_strips_inline_markup(self) -> None:
        assert split_paragraphs("Some **bold** words here") == ["Some bold words here"]

    def test_length_thresholds(self) -> None:
        """Should drop raw blocks up to five chars and cleaned paragraphs up to three."""
        text = "Hello\n\n**ab**\n\nabcdef\n\nA real paragraph."
        assert split_paragraphs(text) == ["abcdef", "A real paragraph."]


class TestExtractSampledText:
    """Tests for extract_sampled_text."""

    BODY = "Alpha paragraph one.\n\nBeta paragraph two.\n\nGamma paragraph three."

    def test_first_and_last_with_two_slots(self) -> None:
        assert (
            extract_sampled_text(self.BODY, max_paragraphs=3)
            == "Alpha paragraph one. Gamma paragraph three."
        )

    def test_first_middle_last_with_more_slots(self) -> None:
        text = self.BODY + "\n\nDelta paragraph four.\n\nEpsilon paragraph five."
        sampled = extract_sampled_text(text, max_paragraphs=5)
        assert sampled == "Alpha paragraph one. Gamma paragraph three. Epsilon paragraph five."

    def test_single_slot_takes_first(self) -> None:
        assert extract_sampled_text(self.BODY, max_paragraphs=2) == "Alpha paragraph one."

    def test_no_slots_left_for_paragraphs(self) -> None:
        """Should select nothing when the title consumes the only slot."""
        assert extract_sampled_text(self.BODY, max_paragraphs=1) == ""

    def test_title_is_first(self) -> None:
        text = "# Reading List\n\nBooks worth reading soon."
        assert extract_sampled_text(text).startswith("Reading List")

    def test_code_and_links_removed(self) -> None:
        text = "Intro with [link text](http://x.y) here.\n\n```\ncode block\n```\n\nOutro paragraph."
        sampled = extract_sampled_text(text, max_paragraphs=3)
        assert "link text" in sampled
        assert "http" not in sampled
        assert "code block" not in sampled

    def test_empty(self) -> None:
        assert extract_sampled_text("") == ""
