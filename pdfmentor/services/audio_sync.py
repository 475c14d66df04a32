from __future__ import annotations

"""Word-level timing for podcast transcripts.

Timings come from a uniform speaking-rate model: every word lasts
``60 / words_per_minute`` seconds and starts where the previous one ended.
"""

import re

from ..schemas import Coordinates, SyncPoint


DEFAULT_WORDS_PER_MINUTE = 150
DEFAULT_WORDS_PER_PAGE = 100
DEFAULT_MAX_WORDS = 200

_EDGE_PUNCTUATION_RE = re.compile(r"^[^\w]+|[^\w]+$")


class PlaceholderLayout:
    """Stand-in for a page layout extractor.

    No word positions are read from the PDF, so every word gets zero
    coordinates. Swap in a real layout source to drive on-page highlighting.
    """

    def locate(self, word: str, index: int, page: int) -> Coordinates:
        return Coordinates()


def synthesize(
    text: str | None,
    words_per_minute: float = DEFAULT_WORDS_PER_MINUTE,
    *,
    words_per_page: int = DEFAULT_WORDS_PER_PAGE,
    max_words: int | None = DEFAULT_MAX_WORDS,
    layout: PlaceholderLayout | None = None,
) -> list[SyncPoint]:
    if text is None:
        raise ValueError("text is required.")
    if words_per_minute <= 0:
        raise ValueError("words_per_minute must be positive.")
    if words_per_page <= 0:
        raise ValueError("words_per_page must be positive.")

    locator = layout or PlaceholderLayout()
    seconds_per_word = 60.0 / words_per_minute
    if seconds_per_word < 0.001:
        raise ValueError("words_per_minute is too high for millisecond timing.")
    tokens = _tokens(text, max_words)

    points: list[SyncPoint] = []
    for index, token in enumerate(tokens):
        word = _EDGE_PUNCTUATION_RE.sub("", token) or token
        page = index // words_per_page + 1
        points.append(
            SyncPoint(
                index=index,
                word=word,
                original_text=token,
                start=_timestamp(index, seconds_per_word),
                end=_timestamp(index + 1, seconds_per_word),
                page=page,
                coordinates=locator.locate(word, index, page),
            )
        )
    return points


def build_transcript(text: str | None, max_words: int | None = DEFAULT_MAX_WORDS) -> str:
    if text is None:
        raise ValueError("text is required.")
    return " ".join(_tokens(text, max_words))


def estimate_duration(word_count: int, words_per_minute: float = DEFAULT_WORDS_PER_MINUTE) -> float:
    if words_per_minute <= 0:
        raise ValueError("words_per_minute must be positive.")
    return _timestamp(word_count, 60.0 / words_per_minute)


def _tokens(text: str, max_words: int | None) -> list[str]:
    tokens = text.split()
    if max_words is not None and max_words >= 0:
        tokens = tokens[:max_words]
    return tokens


def _timestamp(position: int, seconds_per_word: float) -> float:
    # Both neighbours of a boundary are computed from the same position, so
    # end[i] == start[i + 1] holds exactly.
    return round(position * seconds_per_word, 3)
