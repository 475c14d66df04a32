from __future__ import annotations

import json
import random
import re
from typing import Any, Iterable, Sequence

from pydantic import ValidationError

from ..errors import QuizValidationError
from ..schemas import QuizQuestion
from .text_analysis import (
    extract_frequent_terms,
    is_bullet_line,
    segment_lines,
    segment_sentences,
    strip_bullet,
)


QUIZ_STRATEGIES = ("rotation", "markers")
MIN_QUIZ_SENTENCE_CHARS = 20
KEY_POINT_QUESTION = "Which of the following is a key point from this section of the document?"

PLACEHOLDER_DISTRACTORS = (
    "The document does not discuss this point.",
    "None of these statements come from the document.",
    "This point is unrelated to the document content.",
)

_MEASUREMENT_RE = re.compile(
    r"\b\d+(?:[.,]\d+)?\s?"
    r"(?:kg|mg|lbs?|oz|km|cm|mm|GHz|MHz|Hz|GB|MB|TB|kW|mAh|hours?|hrs?|minutes?|mins?|"
    r"seconds?|inches|ft|g|m|W|V|%)(?![A-Za-z])"
)

_PURPOSES = (
    (("specification", "specs", "dimensions", "features"), "To describe a product and its specifications"),
    (("research", "study", "experiment", "results", "hypothesis"), "To present research findings"),
    (("lesson", "chapter", "learn", "course", "exercise"), "To teach a subject step by step"),
    (("policy", "agreement", "terms", "shall"), "To set out rules or obligations"),
)
_DEFAULT_PURPOSE = "To inform the reader about its subject"

_GENERIC_QUESTIONS = (
    (
        "What type of content does this document primarily contain?",
        (
            "Informational material intended for study",
            "A fictional short story",
            "Advertising copy for an unrelated product",
            "Personal correspondence",
        ),
    ),
    (
        "How should this document be used when preparing for a test?",
        (
            "As a source of key points to review",
            "As a replacement for all other materials",
            "It should be ignored entirely",
            "Only its title matters",
        ),
    ),
    (
        "What is the best first step when studying this document?",
        (
            "Identify its main topic and key points",
            "Memorise the page numbers",
            "Skip to the last page",
            "Count the number of words",
        ),
    ),
)


class LocalQuizGenerator:
    """Offline multiple-choice quiz built straight from document text.

    ``rotation`` cycles through the document's sentences, using neighbouring
    sentences as distractors. ``markers`` first asks about structural elements
    (title line, bullets, measurements, purpose) and tops up with rotation
    questions. Either way the result holds exactly ``count`` questions; the
    correct slot is drawn from the injected ``rng``.
    """

    def __init__(self, rng: random.Random | None = None, strategy: str = "rotation") -> None:
        if strategy not in QUIZ_STRATEGIES:
            raise ValueError(f"Unknown quiz strategy '{strategy}'. Expected one of: {', '.join(QUIZ_STRATEGIES)}.")
        self.rng = rng or random.Random()
        self.strategy = strategy

    def generate(self, text: str | None, count: int, filename: str | None = None) -> list[QuizQuestion]:
        if text is None:
            raise ValueError("text is required.")
        if count <= 0:
            return []

        questions: list[QuizQuestion] = []
        if self.strategy == "markers":
            questions.extend(self._marker_questions(text)[:count])

        sentences = segment_sentences(text, min_length=MIN_QUIZ_SENTENCE_CHARS)
        if sentences:
            offset = len(questions)
            for i in range(offset, count):
                questions.append(self._rotation_question(sentences, i - offset))

        generic_index = 0
        while len(questions) < count:
            questions.append(self._generic_question(generic_index, filename))
            generic_index += 1

        return validate_quiz(questions, count)

    def _rotation_question(self, sentences: Sequence[str], i: int) -> QuizQuestion:
        total = len(sentences)
        main = sentences[i % total]
        distractors: list[str] = []
        for step in (1, 2, 3):
            candidate = sentences[(i + step) % total]
            if candidate == main or candidate in distractors:
                candidate = PLACEHOLDER_DISTRACTORS[step - 1]
            distractors.append(candidate)
        return self._assemble(
            question=KEY_POINT_QUESTION,
            correct=main,
            distractors=distractors,
            explanation=f'The document states: "{main}"',
        )

    def _marker_questions(self, text: str) -> list[QuizQuestion]:
        lines = segment_lines(text)
        if not lines:
            return []
        bullets = [strip_bullet(line) for line in lines if is_bullet_line(line) and strip_bullet(line)]
        questions: list[QuizQuestion] = []

        title = lines[0]
        questions.append(
            self._assemble(
                question="What is the main topic of this document?",
                correct=_clip(title),
                distractors=[
                    "Basic information only, with no specific topic",
                    "Generic features shared by any similar document",
                    "An unrelated subject mentioned in passing",
                ],
                explanation=f'The document opens with: "{title}"',
            )
        )

        if bullets:
            questions.append(
                self._assemble(
                    question="Which specific aspect does the document highlight?",
                    correct=_clip(bullets[0]),
                    distractors=[
                        "Basic information only",
                        "Generic features without detail",
                        "Pricing and availability",
                    ],
                    explanation=f'The document lists: "{bullets[0]}"',
                )
            )

        measurement = _MEASUREMENT_RE.search(text)
        if measurement:
            value = measurement.group(0).strip()
            context = next((line for line in lines if value in line), value)
            questions.append(
                self._assemble(
                    question="Which measurement is mentioned in the document?",
                    correct=value,
                    distractors=[
                        "No measurements are given",
                        "Only approximate sizes are described",
                        "Measurements are listed in a separate appendix",
                    ],
                    explanation=f'The document states: "{context}"',
                )
            )

        if len(bullets) > 1:
            questions.append(
                self._assemble(
                    question="Which additional characteristic is described?",
                    correct=_clip(bullets[1]),
                    distractors=[
                        "Generic features only",
                        "A characteristic of a competing product",
                        "Nothing beyond the title",
                    ],
                    explanation=f'The document also lists: "{bullets[1]}"',
                )
            )

        purpose, evidence = _infer_purpose(text)
        other_purposes = [label for _, label in _PURPOSES if label != purpose]
        if purpose != _DEFAULT_PURPOSE:
            other_purposes = [_DEFAULT_PURPOSE, *other_purposes]
        questions.append(
            self._assemble(
                question="What is the primary purpose of this document?",
                correct=purpose,
                distractors=other_purposes[:3],
                explanation=evidence,
            )
        )
        return questions

    def _generic_question(self, index: int, filename: str | None) -> QuizQuestion:
        question, options = _GENERIC_QUESTIONS[index % len(_GENERIC_QUESTIONS)]
        label = f"'{filename}'" if filename else "This document"
        return self._assemble(
            question=question,
            correct=options[0],
            distractors=list(options[1:]),
            explanation=f"{label} was uploaded as study material, so the first option is the sound choice.",
        )

    def _assemble(self, *, question: str, correct: str, distractors: list[str], explanation: str) -> QuizQuestion:
        slot = self.rng.randint(0, 3)
        options = list(distractors[:3])
        options.insert(slot, correct)
        return QuizQuestion(
            question=question,
            options=options,
            correct_index=slot,
            explanation=explanation,
        )


def validate_quiz(questions: Iterable[Any], count: int) -> list[QuizQuestion]:
    """Check a quiz against its schema and return it renumbered 1..count.

    Raises :class:`QuizValidationError` on a wrong length, a missing or empty
    option, an out-of-range ``correctIndex`` or a blank explanation.
    """

    items = list(questions)
    if len(items) != count:
        raise QuizValidationError(f"Expected {count} questions, got {len(items)}.")

    validated: list[QuizQuestion] = []
    for position, item in enumerate(items, start=1):
        payload = item.model_dump(by_alias=True) if isinstance(item, QuizQuestion) else item
        if not isinstance(payload, dict):
            raise QuizValidationError(f"Question {position} is not an object.")
        if isinstance(payload.get("correctIndex", payload.get("correct_index")), bool):
            raise QuizValidationError(f"Question {position} has a non-integer correctIndex.")
        try:
            question = QuizQuestion.model_validate(payload)
        except ValidationError as exc:
            raise QuizValidationError(f"Question {position} is invalid: {exc}") from exc
        validated.append(question.model_copy(update={"id": position}))
    return validated


def parse_provider_quiz(raw: str | None, count: int) -> list[QuizQuestion]:
    """Parse raw model output into a validated quiz; never trusts its shape."""

    if not raw or not raw.strip():
        raise QuizValidationError("Provider returned an empty quiz.")
    candidate = _clean_json_like(raw)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise QuizValidationError(f"Provider quiz is not valid JSON: {exc}") from exc
    if isinstance(data, dict):
        data = data.get("quiz") or data.get("questions")
    if not isinstance(data, list):
        raise QuizValidationError("Provider quiz is not a list of questions.")
    return validate_quiz(data, count)


def _clean_json_like(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        first_nl = text.find("\n")
        if first_nl != -1:
            text = text[first_nl + 1 :]
        if text.endswith("```"):
            text = text[:-3]
    text = text.strip()
    for opener, closer in (("[", "]"), ("{", "}")):
        start = text.find(opener)
        end = text.rfind(closer)
        if start != -1 and end > start:
            return text[start : end + 1]
    return text


def _infer_purpose(text: str) -> tuple[str, str]:
    lowered = text.lower()
    for keywords, label in _PURPOSES:
        hits = [word for word in keywords if word in lowered]
        if hits:
            return label, f"The document mentions {', '.join(repr(word) for word in hits)}."
    terms = extract_frequent_terms(text, 3)
    if terms:
        listed = ", ".join(repr(term.text) for term in terms)
        return _DEFAULT_PURPOSE, f"The document's most repeated terms are {listed}."
    return _DEFAULT_PURPOSE, "The document presents information without a more specific goal."


def _clip(value: str, limit: int = 160) -> str:
    stripped = " ".join(value.split())
    if len(stripped) <= limit:
        return stripped
    return stripped[: limit - 1].rstrip() + "…"
