from __future__ import annotations

"""Sentence segmentation, term frequency ranking and context lookup.

Everything here is pure and deterministic: the same text always produces the
same segments, terms and contexts. These helpers back every offline generator
in the package.
"""

import re
from collections import Counter
from dataclasses import dataclass


MIN_SENTENCE_CHARS = 10
STRUCTURED_LINE_MAX_CHARS = 100
MIN_TERM_CHARS = 5

STOP_WORDS = frozenset(
    {
        "about",
        "after",
        "also",
        "and",
        "because",
        "been",
        "before",
        "being",
        "could",
        "from",
        "have",
        "into",
        "more",
        "other",
        "should",
        "some",
        "than",
        "that",
        "their",
        "them",
        "there",
        "these",
        "they",
        "this",
        "those",
        "through",
        "were",
        "what",
        "when",
        "where",
        "which",
        "while",
        "will",
        "with",
        "would",
    }
)

# Short function words that are too common to locate a phrase by.
FUNCTION_WORDS = frozenset(
    {
        "all", "and", "any", "are", "but", "can", "for", "had", "has", "her", "his", "how",
        "its", "may", "nor", "not", "off", "our", "out", "per", "the", "via", "was", "who",
        "why", "yet", "you", "each", "only", "such", "then", "your",
    }
)

_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+|\n[ \t]*\n\s*")
_TERMINAL_RUN_RE = re.compile(r"[.!?]+$")
_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_NON_WORD_RE = re.compile(r"\W+")
_BULLET_RE = re.compile(r"^(?:[•▪◦‣\-\*]\s*|\d+[.)]\s+)")


@dataclass(frozen=True)
class Segment:
    text: str
    source_offset: int


@dataclass(frozen=True)
class Term:
    text: str
    frequency: int
    normalized_form: str


def _require_text(text: str | None) -> str:
    if text is None:
        raise ValueError("text is required.")
    return text


def normalize_sentence(fragment: str) -> str:
    """Collapse whitespace and end the fragment with a single terminal mark."""

    collapsed = " ".join(fragment.split())
    if not collapsed:
        return ""
    match = _TERMINAL_RUN_RE.search(collapsed)
    if match:
        return collapsed[: match.start()] + collapsed[-1]
    return collapsed + "."


def segment(text: str | None, min_length: int = MIN_SENTENCE_CHARS) -> list[Segment]:
    """Split text into sentence segments in document order.

    Sentences end at a run of ``.``, ``!`` or ``?`` followed by whitespace, or at
    a blank line. Decimals such as ``1.24`` stay intact.
    """

    source = _require_text(text)
    if not source.strip():
        return []

    segments: list[Segment] = []
    start = 0
    for match in _BOUNDARY_RE.finditer(source):
        _append_segment(segments, source, start, match.start(), min_length)
        start = match.end()
    _append_segment(segments, source, start, len(source), min_length)
    return segments


def _append_segment(segments: list[Segment], source: str, start: int, end: int, min_length: int) -> None:
    raw = source[start:end]
    stripped = raw.strip()
    if not stripped or len(stripped) < min_length:
        return
    offset = start + (len(raw) - len(raw.lstrip()))
    segments.append(Segment(text=normalize_sentence(stripped), source_offset=offset))


def segment_sentences(text: str | None, min_length: int = MIN_SENTENCE_CHARS) -> list[str]:
    return [item.text for item in segment(text, min_length=min_length)]


def segment_lines(text: str | None) -> list[str]:
    source = _require_text(text)
    return [line.strip() for line in source.splitlines() if line.strip()]


def split_paragraphs(text: str | None) -> list[str]:
    source = _require_text(text)
    return [chunk.strip() for chunk in _PARAGRAPH_RE.split(source) if chunk.strip()]


def is_bullet_line(line: str) -> bool:
    return bool(_BULLET_RE.match(line.strip()))


def is_structured_line(line: str) -> bool:
    """True for bullet, numbered or short ``label: value`` lines."""

    stripped = line.strip()
    if not stripped:
        return False
    if is_bullet_line(stripped):
        return True
    return ":" in stripped and len(stripped) < STRUCTURED_LINE_MAX_CHARS


def strip_bullet(line: str) -> str:
    return _BULLET_RE.sub("", line.strip(), count=1).strip()


def extract_frequent_terms(text: str | None, limit: int) -> list[Term]:
    """Rank tokens of five or more letters by raw frequency.

    Ties keep first-occurrence order. No stemming and no weighting: the result
    only says which words repeat a lot in this document.
    """

    source = _require_text(text)
    if limit <= 0:
        return []

    counts: Counter[str] = Counter()
    surface_forms: dict[str, str] = {}
    for token in _NON_WORD_RE.split(source):
        if len(token) < MIN_TERM_CHARS:
            continue
        normalized = token.lower()
        if normalized in STOP_WORDS:
            continue
        counts[normalized] += 1
        surface_forms.setdefault(normalized, token)

    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [
        Term(text=surface_forms[normalized], frequency=frequency, normalized_form=normalized)
        for normalized, frequency in ranked[:limit]
    ]


def find_context_for_term(text: str | None, term: str) -> str:
    """Return the first sentence mentioning ``term``; never empty."""

    source = _require_text(text)
    needle = " ".join((term or "").split()).lower()
    if not needle:
        return _filler(term)
    return _locate(source, lambda unit: needle in unit.lower()) or _filler(term)


def find_context_for_phrase(text: str | None, phrase: str) -> str:
    """Like :func:`find_context_for_term` but matches any of the phrase's lead words.

    PDF extraction leaves irregular whitespace inside multi-word phrases, so an
    exact substring match on the whole phrase is unreliable.
    """

    source = _require_text(text)
    keys = _phrase_keys(phrase)
    if not keys:
        return _filler(phrase)
    patterns = [re.compile(rf"\b{re.escape(key)}\b", re.IGNORECASE) for key in keys]
    return _locate(source, lambda unit: any(pattern.search(unit) for pattern in patterns)) or _filler(phrase)


def _phrase_keys(phrase: str) -> list[str]:
    lead_words = [word.lower() for word in re.findall(r"\w+", phrase or "")[:3]]
    keys = [word for word in lead_words if len(word) >= 3 and word not in STOP_WORDS and word not in FUNCTION_WORDS]
    return keys or lead_words


def _locate(source: str, matches) -> str | None:
    for sentence in segment_sentences(source, min_length=1):
        if matches(sentence):
            return sentence
    for paragraph in split_paragraphs(source):
        if matches(" ".join(paragraph.split())):
            sentences = segment_sentences(paragraph, min_length=1)
            if sentences:
                return sentences[0]
    return None


def _filler(term: str) -> str:
    label = " ".join((term or "").split()) or "This term"
    return f"'{label}' appears in the context of the document content."
