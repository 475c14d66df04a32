from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Mapping

from ..errors import InsufficientContent, QuizValidationError
from ..schemas import (
    AudioSegment,
    ChatAnswer,
    Flashcard,
    FlashcardBatch,
    PodcastAudio,
    PodcastFallback,
    PodcastResult,
    QuizBatch,
    SummaryResult,
)
from .audio_store import AudioStore
from .audio_sync import build_transcript, synthesize
from .local_answers import answer_locally, local_analysis, summarize_locally
from .local_flashcards import build_local_flashcards, renumber
from .local_quiz import QUIZ_STRATEGIES, LocalQuizGenerator, parse_provider_quiz
from .provider_gateway import ProviderGateway, ProviderOk
from .text_analysis import find_context_for_term
from .tts_service import DEFAULT_VOICE, estimate_audio_seconds, split_text_into_segments


@dataclass
class GenerationSettings:
    min_content_chars: int = 100
    max_items: int = 20
    quiz_strategy: str = "rotation"
    words_per_minute: float = 150
    words_per_page: int = 100
    max_sync_words: int = 200

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "GenerationSettings":
        return cls(
            min_content_chars=int(config.get("MIN_CONTENT_CHARS", cls.min_content_chars)),
            max_items=max(1, int(config.get("MAX_ITEMS_PER_REQUEST", cls.max_items))),
            quiz_strategy=str(config.get("QUIZ_FALLBACK_STRATEGY") or cls.quiz_strategy).strip().lower(),
            words_per_minute=float(config.get("SYNC_WORDS_PER_MINUTE", cls.words_per_minute)),
            words_per_page=int(config.get("SYNC_WORDS_PER_PAGE", cls.words_per_page)),
            max_sync_words=int(config.get("SYNC_MAX_WORDS", cls.max_sync_words)),
        )


class StudyMaterialService:
    """Builds summaries, flashcards, quizzes, podcasts and answers for a document.

    Each operation asks the provider gateway first and falls through to the
    offline generators on any provider error or malformed output, so callers
    always get a well-formed result.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        *,
        audio_store: AudioStore,
        settings: GenerationSettings | None = None,
        quiz_seed: int | None = None,
    ) -> None:
        self.gateway = gateway
        self.audio_store = audio_store
        self.settings = settings or GenerationSettings()
        self.quiz_seed = quiz_seed
        if self.settings.quiz_strategy not in QUIZ_STRATEGIES:
            raise ValueError(
                f"Unknown quiz strategy '{self.settings.quiz_strategy}'. Expected one of: {', '.join(QUIZ_STRATEGIES)}."
            )
        self._logger = logging.getLogger(__name__)

    def summarize(self, text: str | None, include_analysis: bool = False) -> SummaryResult:
        source_text = self._require_text(text)
        result = self.gateway.generate_summary(source_text)
        if isinstance(result, ProviderOk) and str(result.content or "").strip():
            summary, source = str(result.content).strip(), "llm"
        else:
            self._log_fallback("summary", result)
            summary, source = summarize_locally(source_text), "fallback"

        analysis = None
        if include_analysis:
            analyzed = self.gateway.analyze_text(source_text)
            if isinstance(analyzed, ProviderOk):
                content = analyzed.content
                analysis = {
                    "keywords": list(content.get("keywords") or [])[:10],
                    "concepts": content.get("concepts") or [],
                    "categories": content.get("categories") or [],
                    "sentiment": content.get("sentiment"),
                    "emotion": content.get("emotion"),
                }
            else:
                analysis = local_analysis(source_text)
        return SummaryResult(summary=summary, source=source, analysis=analysis)

    def flashcards(self, text: str | None, count: int = 5, use_nlu: bool = True) -> FlashcardBatch:
        source_text = self._require_content(text, "flashcards")
        count = self._clamp(count)

        cards: list[Flashcard] = []
        source = "fallback"
        if use_nlu:
            result = self.gateway.extract_keywords(source_text, count * 2)
            if isinstance(result, ProviderOk):
                cards = self._keyword_cards(source_text, result.content or [], count)
                source = "nlu"
            else:
                self._log_fallback("flashcards_nlu", result)

        if not cards:
            result = self.gateway.generate_flashcards(source_text, count)
            if isinstance(result, ProviderOk):
                cards = self._llm_cards(result.content, count)
                source = "llm"
            else:
                self._log_fallback("flashcards_llm", result)

        if not cards:
            cards = build_local_flashcards(source_text, count)
            source = "fallback"

        cards = renumber(cards)
        method = cards[0].type if cards else "none"
        return FlashcardBatch(flashcards=cards, method=method, source=source)

    def quiz(self, text: str | None, count: int = 5, filename: str | None = None) -> QuizBatch:
        source_text = self._require_content(text, "a quiz")
        count = self._clamp(count)

        result = self.gateway.generate_quiz(source_text, count)
        if isinstance(result, ProviderOk):
            try:
                questions = parse_provider_quiz(result.content, count)
                return QuizBatch(questions=questions, source="llm")
            except QuizValidationError as exc:
                self._logger.warning("quiz_provider_output_rejected", extra={"error": str(exc)})
        else:
            self._log_fallback("quiz", result)

        generator = self._quiz_generator()
        questions = generator.generate(source_text, count, filename=filename)
        return QuizBatch(questions=questions, source="fallback", strategy=generator.strategy)

    def podcast(self, text: str | None, voice: str | None = None, audio_format: str = "mp3") -> PodcastResult:
        source_text = self._require_text(text)
        chosen_voice = voice or DEFAULT_VOICE
        # Audio narrates the whole document; only the highlight data is capped.
        transcript = build_transcript(source_text, max_words=None)
        sync_data = synthesize(
            source_text,
            self.settings.words_per_minute,
            words_per_page=self.settings.words_per_page,
            max_words=self.settings.max_sync_words,
        )

        segments = split_text_into_segments(transcript)
        if not segments:
            return self._podcast_fallback("The document has no readable text to narrate.", transcript, sync_data)

        audio_segments: list[AudioSegment] = []
        saved_files: list[str] = []
        for position, segment in enumerate(segments, start=1):
            result = self.gateway.synthesize_speech(segment, chosen_voice, audio_format)
            if not isinstance(result, ProviderOk) or not result.content:
                self._log_fallback("podcast", result, segment=position, segments=len(segments))
                for filename in saved_files:
                    self.audio_store.delete(filename)
                return self._podcast_fallback(
                    "Text-to-speech is not available. Add TTS credentials to enable podcast audio.",
                    transcript,
                    sync_data,
                )
            filename, url = self.audio_store.save(result.content, audio_format)
            saved_files.append(filename)
            audio_segments.append(AudioSegment(url=url, duration=estimate_audio_seconds(segment)))

        podcast = PodcastAudio(
            segments=audio_segments,
            total_duration=sum(item.duration for item in audio_segments),
            voice=chosen_voice,
            format=audio_format,
            segment_count=len(audio_segments),
            audio_url=audio_segments[0].url,
            transcript=transcript,
            sync_data=sync_data,
        )
        return PodcastResult(success=True, podcast=podcast)

    def answer(self, text: str | None, question: str) -> ChatAnswer:
        source_text = self._require_text(text)
        if not (question or "").strip():
            raise ValueError("question is required.")

        local_answer, relevant = answer_locally(source_text, question)
        result = self.gateway.answer_question(question, source_text)
        if isinstance(result, ProviderOk) and str(result.content or "").strip():
            return ChatAnswer(
                question=question,
                answer=str(result.content).strip(),
                source="llm",
                relevant_sentences=relevant,
            )
        self._log_fallback("chat", result)
        return ChatAnswer(question=question, answer=local_answer, source="fallback", relevant_sentences=relevant)

    def _keyword_cards(self, text: str, keywords, count: int) -> list[Flashcard]:
        cards: list[Flashcard] = []
        for keyword in keywords[:count]:
            cards.append(
                Flashcard(
                    question=f'What is the significance of "{keyword.text}" in this document?',
                    answer=find_context_for_term(text, keyword.text),
                    type="keyword-based",
                    source="nlu",
                    keyword=keyword.text,
                    relevance=keyword.relevance,
                )
            )
        return cards

    @staticmethod
    def _llm_cards(deck, count: int) -> list[Flashcard]:
        cards: list[Flashcard] = []
        for card in getattr(deck, "cards", None) or []:
            question = (card.question or "").strip()
            answer = (card.answer or "").strip()
            if question and answer:
                cards.append(Flashcard(question=question, answer=answer, type="llm", source="llm"))
        return cards[:count]

    def _podcast_fallback(self, message: str, transcript: str, sync_data) -> PodcastResult:
        return PodcastResult(
            success=False,
            error="Podcast generation not available",
            fallback=PodcastFallback(message=message, transcript=transcript, sync_data=sync_data),
        )

    def _quiz_generator(self) -> LocalQuizGenerator:
        # A fresh generator per call keeps seeded output independent of request interleaving.
        rng = random.Random(self.quiz_seed) if self.quiz_seed is not None else random.Random()
        return LocalQuizGenerator(rng=rng, strategy=self.settings.quiz_strategy)

    def _clamp(self, count: int) -> int:
        return min(max(1, int(count)), self.settings.max_items)

    @staticmethod
    def _require_text(text: str | None) -> str:
        if text is None:
            raise ValueError("text is required.")
        return text

    def _require_content(self, text: str | None, operation: str) -> str:
        source_text = self._require_text(text)
        length = len(source_text.strip())
        if length < self.settings.min_content_chars:
            raise InsufficientContent(operation, self.settings.min_content_chars, length)
        return source_text

    def _log_fallback(self, operation: str, result, **fields) -> None:
        reason = getattr(result, "reason", None) or "empty provider response"
        self._logger.info(
            "fallback_used",
            extra={"operation": operation, "reason": reason, **fields},
        )
