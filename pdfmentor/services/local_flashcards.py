from __future__ import annotations

import re
from dataclasses import dataclass

from ..schemas import Flashcard
from .text_analysis import (
    FUNCTION_WORDS,
    STOP_WORDS,
    extract_frequent_terms,
    find_context_for_phrase,
    find_context_for_term,
    is_bullet_line,
    is_structured_line,
    segment_lines,
    segment_sentences,
    strip_bullet,
)


@dataclass
class FlashcardOptions:
    max_phrases: int = 10
    max_terms: int = 10
    min_phrase_chars: int = 4
    question_preview_chars: int = 50


def build_local_flashcards(text: str | None, count: int, options: FlashcardOptions | None = None) -> list[Flashcard]:
    """
    Deterministic, offline flashcards so the deck keeps working when the NLU
    and language model providers are unavailable or misconfigured.

    Phrase cards fill up to half the deck, term cards the rest, and sentence
    cards top it up when the document is short on both.
    """
    if text is None:
        raise ValueError("text is required.")
    opts = options or FlashcardOptions()
    if count <= 0:
        return []

    phrases = _key_phrases(text, opts)
    terms = extract_frequent_terms(text, opts.max_terms)
    sentences = segment_sentences(text)
    if not phrases and not terms and not any(_has_content_word(sentence) for sentence in sentences):
        return []

    cards: list[Flashcard] = []
    seen_answers: set[str] = set()

    phrase_quota = (count + 1) // 2
    for phrase in phrases:
        if len(cards) >= phrase_quota:
            break
        _append_unique(
            cards,
            seen_answers,
            question=f"What does the document say about: '{_lead_words(phrase, 4)}...'?",
            answer=find_context_for_phrase(text, phrase),
            card_type="phrase-based",
        )

    for term in terms:
        if len(cards) >= count:
            break
        _append_unique(
            cards,
            seen_answers,
            question=f"Define or explain '{term.text}' as mentioned in the document.",
            answer=find_context_for_term(text, term.text),
            card_type="term-based",
        )

    if len(cards) < count:
        for sentence in sentences:
            if len(cards) >= count:
                break
            _append_unique(
                cards,
                seen_answers,
                question=f'What is the main idea of: "{sentence[: opts.question_preview_chars]}..."?',
                answer=sentence,
                card_type="sentence-based",
            )

    return renumber(cards)


def renumber(cards: list[Flashcard]) -> list[Flashcard]:
    """Reassign ids 1..N by position, whatever produced each card."""

    return [card.model_copy(update={"id": index}) for index, card in enumerate(cards, start=1)]


def _key_phrases(text: str, opts: FlashcardOptions) -> list[str]:
    phrases: list[str] = []
    seen: set[str] = set()
    for line in segment_lines(text):
        if len(phrases) >= opts.max_phrases:
            break
        if not is_structured_line(line):
            continue
        phrase = strip_bullet(line) if is_bullet_line(line) else line
        phrase = phrase.strip().rstrip(":").strip()
        key = phrase.lower()
        if len(phrase) < opts.min_phrase_chars or key in seen:
            continue
        seen.add(key)
        phrases.append(phrase)
    return phrases


def _has_content_word(sentence: str) -> bool:
    return any(
        len(word) >= 3 and word not in STOP_WORDS and word not in FUNCTION_WORDS
        for word in re.findall(r"[a-z]+", sentence.lower())
    )


def _lead_words(phrase: str, limit: int) -> str:
    return " ".join(phrase.split()[:limit])


def _append_unique(cards: list[Flashcard], seen_answers: set[str], *, question: str, answer: str, card_type: str) -> None:
    key = answer.strip().lower()
    if not key or key in seen_answers:
        return
    seen_answers.add(key)
    cards.append(
        Flashcard(
            id=len(cards) + 1,
            question=question,
            answer=answer.strip(),
            type=card_type,
            source="fallback",
        )
    )
