from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Flashcard(BaseModel):
    id: int = Field(0, description="1-based position in the emitted deck")
    question: str
    answer: str
    type: str = Field("sentence-based", description="Generation method that produced the card")
    source: str = Field("fallback", description="fallback, nlu or llm")
    keyword: str | None = None
    relevance: float | None = None


class QuizQuestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int = 0
    question: str
    options: list[str]
    correct_index: int = Field(..., alias="correctIndex", ge=0, le=3)
    explanation: str

    @field_validator("question", "explanation")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("options")
    @classmethod
    def _four_options(cls, value: list[str]) -> list[str]:
        if len(value) != 4:
            raise ValueError(f"expected exactly 4 options, got {len(value)}")
        cleaned = [option.strip() for option in value]
        if not all(cleaned):
            raise ValueError("options must be non-empty")
        return cleaned


class Coordinates(BaseModel):
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


class SyncPoint(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    index: int
    word: str
    original_text: str = Field(..., alias="originalText")
    start: float = Field(..., ge=0)
    end: float
    page: int = Field(..., ge=1)
    coordinates: Coordinates = Field(default_factory=Coordinates)

    @model_validator(mode="after")
    def _end_after_start(self) -> "SyncPoint":
        if self.end <= self.start:
            raise ValueError("end must be greater than start")
        return self


class FlashcardBatch(BaseModel):
    flashcards: list[Flashcard]
    method: str
    source: str


class QuizBatch(BaseModel):
    questions: list[QuizQuestion]
    source: str
    strategy: str | None = None


class SummaryResult(BaseModel):
    summary: str
    source: str
    analysis: dict[str, Any] | None = None


class ChatAnswer(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: str
    answer: str
    source: str
    relevant_sentences: int = Field(0, alias="relevantSentences")


class AudioSegment(BaseModel):
    url: str
    duration: float


class PodcastAudio(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    segments: list[AudioSegment]
    total_duration: float = Field(..., alias="totalDuration")
    voice: str
    format: str
    segment_count: int = Field(..., alias="segmentCount")
    audio_url: str | None = Field(None, alias="audioUrl")
    transcript: str
    sync_data: list[SyncPoint] = Field(default_factory=list, alias="syncData")


class PodcastFallback(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    audio_url: str | None = Field(None, alias="audioUrl")
    message: str
    transcript: str
    sync_data: list[SyncPoint] = Field(default_factory=list, alias="syncData")


class PodcastResult(BaseModel):
    success: bool
    podcast: PodcastAudio | None = None
    fallback: PodcastFallback | None = None
    error: str | None = None
