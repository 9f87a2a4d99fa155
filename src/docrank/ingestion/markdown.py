"""Markdown cleaning and paragraph sampling.

Strips the syntax noise that would otherwise leak into token streams
(fenced code, link/image markup, heading/emphasis/list/quote markers) before
text reaches the tokenizer.
"""

from __future__ import annotations

import re
from typing import List

_CODE_FENCE_RE = re.compile(r"```[\s\S]*?```")
_IMAGE_RE = re.compile(r"!\[[^\]]*\]\([^)]+\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_HEADING_RE = re.compile(r"#{1,6}\s+")
_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_ITALIC_RE = re.compile(r"\*([^*]+)\*")
_INLINE_CODE_RE = re.compile(r"`([^`]+)`")
_BULLET_RE = re.compile(r"^\s*[-*+]\s+", re.MULTILINE)
_NUMBERED_RE = re.compile(r"^\s*\d+\.\s+", re.MULTILINE)
_QUOTE_RE = re.compile(r"^\s*>\s+", re.MULTILINE)
_NON_WORD_RE = re.compile(r"[^\w\s\u4e00-\u9fff]")
_WHITESPACE_RE = re.compile(r"\s+")
_TITLE_RE = re.compile(r"^#{1,6}\s+(.+)$", re.MULTILINE)
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\n+")
_EXTRA_NEWLINES_RE = re.compile(r"\n{3,}")


def _strip_inline_markup(text: str) -> str:
    text = _HEADING_RE.sub("", text)
    text = _BOLD_RE.sub(r"\1", text)
    text = _ITALIC_RE.sub(r"\1", text)
    text = _INLINE_CODE_RE.sub(r"\1", text)
    text = _BULLET_RE.sub("", text)
    text = _NUMBERED_RE.sub("", text)
    return text


def clean_markdown(text: str) -> str:
    """Reduce Markdown to a single line of words for pairwise comparison."""
    if not text:
        return ""
    text = _CODE_FENCE_RE.sub("", text)
    # images before links, otherwise the link pattern eats the image alt text
    text = _IMAGE_RE.sub("", text)
    text = _LINK_RE.sub(r"\1", text)
    text = _HEADING_RE.sub(" ", text)
    text = _BOLD_RE.sub(r"\1", text)
    text = _ITALIC_RE.sub(r"\1", text)
    text = _INLINE_CODE_RE.sub(r"\1", text)
    text = _BULLET_RE.sub("", text)
    text = _NUMBERED_RE.sub("", text)
    text = _QUOTE_RE.sub("", text)
    text = _NON_WORD_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def split_paragraphs(text: str) -> List[str]:
    """Return cleaned paragraphs.

    Raw blocks of five characters or fewer are skipped, as are paragraphs
    left with three characters or fewer after markup is stripped.
    """
    paragraphs = []
    for raw in _PARAGRAPH_SPLIT_RE.split(text):
        if len(raw.strip()) <= 5:
            continue
        paragraph = _strip_inline_markup(raw).strip()
        if len(paragraph) > 3:
            paragraphs.append(paragraph)
    return paragraphs


def extract_sampled_text(text: str, *, max_paragraphs: int = 5) -> str:
    """Return the title plus a sample of paragraphs from a Markdown document.

    One paragraph slot is reserved for the title. With one remaining slot the
    first paragraph is taken, with two the first and last, and with more the
    first, middle and last paragraphs.
    """
    if not text:
        return ""

    cleaned = _CODE_FENCE_RE.sub(" ", text)
    cleaned = _IMAGE_RE.sub(" ", cleaned)
    cleaned = _LINK_RE.sub(r"\1", cleaned)
    cleaned = _QUOTE_RE.sub(" ", cleaned)
    cleaned = _EXTRA_NEWLINES_RE.sub("\n\n", cleaned).strip()

    selected: List[str] = []
    title_match = _TITLE_RE.search(cleaned)
    if title_match:
        selected.append(title_match.group(1).strip())

    paragraphs = split_paragraphs(cleaned)
    sample_size = min(max_paragraphs - 1, len(paragraphs))
    if sample_size == 1:
        selected.append(paragraphs[0])
    elif sample_size == 2:
        selected.extend([paragraphs[0], paragraphs[-1]])
    elif sample_size > 2:
        selected.extend([paragraphs[0], paragraphs[len(paragraphs) // 2], paragraphs[-1]])

    return " ".join(selected)
