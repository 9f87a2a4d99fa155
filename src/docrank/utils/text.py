"""Text helpers: bilingual tokenizer, stopwords and term frequencies."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, List

STOPWORDS = frozenset(
    {
        # English
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
        "with", "by", "is", "are", "was", "were", "be", "been", "being", "have",
        "has", "had", "do", "does", "did", "will", "would", "could", "should",
        "may", "might", "must", "can", "this", "that", "these", "those", "i",
        "you", "he", "she", "it", "we", "they", "what", "which", "who", "when",
        "where", "why", "how", "all", "any", "both", "each", "few", "more",
        "most", "other", "some", "such", "no", "nor", "not", "only", "own",
        "same", "so", "than", "too", "very", "just",
        # Chinese
        "的", "了", "在", "是", "我", "有", "和", "就", "不", "人", "都", "一",
        "一个", "上", "也", "很", "到", "说", "要", "去", "你", "会", "着",
        "没有", "看", "好", "自己", "这", "那", "里", "就是", "还", "把", "比",
        "从", "被", "本", "个", "中", "大", "为", "来", "以", "时", "用", "下",
        "而", "及", "与", "其", "或", "但", "如", "若", "则", "因", "所以",
        "如果", "虽然", "尽管", "无论", "不管", "除了", "除非", "直到", "当",
        "关于", "对于", "至于", "由于", "因为", "以便", "为了", "按照", "根据",
        "依据",
    }
)


def is_cjk(char: str) -> bool:
    return "\u4e00" <= char <= "\u9fff"


def _is_latin(char: str) -> bool:
    return "a" <= char <= "z"


def tokenize(text: str) -> List[str]:
    """Split cleaned text into lower-cased tokens.

    Every CJK ideograph becomes its own token, runs of Latin letters longer
    than one character become word tokens, and everything else (digits,
    punctuation, whitespace) is dropped. Stopwords are removed while the
    original token order is preserved.
    """
    if not text:
        return []

    lowered = text.lower()
    tokens: List[str] = []
    index = 0
    length = len(lowered)
    while index < length:
        char = lowered[index]
        if is_cjk(char):
            tokens.append(char)
            index += 1
        elif _is_latin(char):
            start = index
            while index < length and _is_latin(lowered[index]):
                index += 1
            if index - start > 1:
                tokens.append(lowered[start:index])
        else:
            index += 1

    return [token for token in tokens if token and token not in STOPWORDS]


def term_frequencies(tokens: Iterable[str]) -> Counter:
    """Count raw occurrences of each token."""
    return Counter(tokens)


def truncate_text(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars]
