from __future__ import annotations

import re

from .text_analysis import STOP_WORDS, extract_frequent_terms, segment_sentences


NO_ANSWER_MESSAGE = "I couldn't find relevant information in the document to answer your question."
EMPTY_SUMMARY_MESSAGE = "The document does not contain enough readable text to summarize."
_QUESTION_WORDS = {"how", "who", "why", "does", "did", "the", "are", "was", "can", "explain", "tell"}


def summarize_locally(text: str | None, sentence_count: int = 3) -> str:
    if text is None:
        raise ValueError("text is required.")
    sentences = segment_sentences(text, min_length=1)
    if not sentences:
        return EMPTY_SUMMARY_MESSAGE
    return " ".join(sentences[: max(1, sentence_count)])


def local_analysis(text: str, keyword_limit: int = 10) -> dict:
    terms = extract_frequent_terms(text, keyword_limit)
    return {
        "keywords": [
            {"text": term.text, "count": term.frequency, "relevance": None}
            for term in terms
        ],
        "concepts": [],
        "categories": [],
        "sentiment": None,
        "emotion": None,
    }


def answer_locally(text: str | None, question: str) -> tuple[str, int]:
    """Return the first sentence sharing a keyword with the question.

    The second element is how many sentences matched at all.
    """
    if text is None:
        raise ValueError("text is required.")
    keywords = _question_keywords(question)
    if not keywords:
        return NO_ANSWER_MESSAGE, 0

    relevant = [
        sentence
        for sentence in segment_sentences(text, min_length=1)
        if any(keyword in sentence.lower() for keyword in keywords)
    ]
    if not relevant:
        return NO_ANSWER_MESSAGE, 0
    return relevant[0], len(relevant)


def _question_keywords(question: str) -> list[str]:
    words = re.findall(r"\w+", (question or "").lower())
    return [word for word in words if len(word) >= 3 and word not in STOP_WORDS and word not in _QUESTION_WORDS]
