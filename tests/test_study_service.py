import json

import pytest

from pdfmentor.errors import InsufficientContent
from pdfmentor.services.gemini_runner import GeneratedCard, GeneratedDeck
from pdfmentor.services.nlu_client import Keyword
from pdfmentor.services.provider_gateway import ProviderError, ProviderOk
from pdfmentor.services.study_materials import GenerationSettings, StudyMaterialService

from conftest import SAMPLE_TEXT


def _quiz_payload(count):
    return json.dumps(
        [
            {
                "question": f"Question {i}?",
                "options": ["Right", "Wrong", "Also wrong", "Still wrong"],
                "correctIndex": 0,
                "explanation": "The document says so.",
            }
            for i in range(count)
        ]
    )


def test_flashcards_require_minimum_content(study_service):
    with pytest.raises(InsufficientContent) as excinfo:
        study_service.flashcards("Too short to study.", 5)
    assert excinfo.value.minimum == 100
    assert excinfo.value.actual == len("Too short to study.")


def test_quiz_requires_minimum_content(study_service):
    with pytest.raises(InsufficientContent):
        study_service.quiz("   padded   ", 5)


def test_flashcards_prefer_nlu_keywords(study_service, gateway):
    gateway.results["extract_keywords"] = ProviderOk(
        content=[Keyword(text="Chlorophyll", relevance=0.92), Keyword(text="Glucose", relevance=0.71)],
        provider="nlu",
    )
    batch = study_service.flashcards(SAMPLE_TEXT, 5)

    assert batch.source == "nlu"
    assert batch.method == "keyword-based"
    assert [card.id for card in batch.flashcards] == [1, 2]
    assert batch.flashcards[0].keyword == "Chlorophyll"
    assert batch.flashcards[0].answer.startswith("Chlorophyll absorbs")
    assert gateway.calls[0] == ("extract_keywords", (SAMPLE_TEXT, 10))


def test_flashcards_use_llm_deck_when_nlu_fails(study_service, gateway):
    deck = GeneratedDeck(
        cards=[
            GeneratedCard(question="What does chlorophyll absorb?", answer="Blue and red light."),
            GeneratedCard(question="  ", answer="dropped"),
        ]
    )
    gateway.results["generate_flashcards"] = ProviderOk(content=deck, provider="llm")
    batch = study_service.flashcards(SAMPLE_TEXT, 3)

    assert batch.source == "llm"
    assert [(card.id, card.type) for card in batch.flashcards] == [(1, "llm")]


def test_flashcards_fall_back_to_local_generator(study_service, gateway):
    batch = study_service.flashcards(SAMPLE_TEXT, 4, use_nlu=False)

    assert batch.source == "fallback"
    assert 1 <= len(batch.flashcards) <= 4
    assert [card.id for card in batch.flashcards] == list(range(1, len(batch.flashcards) + 1))
    assert all(name != "extract_keywords" for name, _ in gateway.calls)


def test_flashcard_count_is_clamped(gateway, audio_store):
    service = StudyMaterialService(
        gateway,
        audio_store=audio_store,
        settings=GenerationSettings(max_items=2),
    )
    gateway.results["generate_flashcards"] = ProviderOk(
        content=GeneratedDeck(cards=[GeneratedCard(question=f"Q{i}", answer=f"A{i}") for i in range(5)]),
        provider="llm",
    )
    batch = service.flashcards(SAMPLE_TEXT, 50, use_nlu=False)
    assert len(batch.flashcards) == 2
    assert gateway.calls[-1] == ("generate_flashcards", (SAMPLE_TEXT, 2))


def test_quiz_accepts_valid_provider_output(study_service, gateway):
    gateway.results["generate_quiz"] = ProviderOk(content=_quiz_payload(3), provider="llm")
    batch = study_service.quiz(SAMPLE_TEXT, 3)

    assert batch.source == "llm"
    assert batch.strategy is None
    assert [q.id for q in batch.questions] == [1, 2, 3]


def test_quiz_rejects_short_provider_output_and_falls_back(study_service, gateway):
    gateway.results["generate_quiz"] = ProviderOk(content=_quiz_payload(2), provider="llm")
    batch = study_service.quiz(SAMPLE_TEXT, 4)

    assert batch.source == "fallback"
    assert batch.strategy == "rotation"
    assert len(batch.questions) == 4


def test_quiz_falls_back_on_provider_error(study_service):
    batch = study_service.quiz(SAMPLE_TEXT, 5, filename="notes.pdf")
    assert batch.source == "fallback"
    for question in batch.questions:
        assert question.options[question.correct_index] in question.explanation


def test_quiz_zero_count_becomes_one(study_service):
    assert len(study_service.quiz(SAMPLE_TEXT, 0).questions) == 1


def test_seeded_services_produce_identical_quizzes(gateway, audio_store):
    def build():
        return StudyMaterialService(gateway, audio_store=audio_store, quiz_seed=99)

    first = build().quiz(SAMPLE_TEXT, 5)
    second = build().quiz(SAMPLE_TEXT, 5)
    assert first.model_dump() == second.model_dump()


def test_seeded_service_repeats_quiz_across_calls(gateway, audio_store):
    service = StudyMaterialService(gateway, audio_store=audio_store, quiz_seed=5)
    assert service.quiz(SAMPLE_TEXT, 4).model_dump() == service.quiz(SAMPLE_TEXT, 4).model_dump()


def test_unknown_quiz_strategy_is_rejected(gateway, audio_store):
    with pytest.raises(ValueError):
        StudyMaterialService(gateway, audio_store=audio_store, settings=GenerationSettings(quiz_strategy="lottery"))


def test_summary_fallback_and_local_analysis(study_service):
    result = study_service.summarize(SAMPLE_TEXT, include_analysis=True)

    assert result.source == "fallback"
    assert result.summary.startswith("Photosynthesis converts light energy")
    assert result.summary.count(".") == 3
    assert result.analysis["keywords"]
    assert result.analysis["sentiment"] is None


def test_summary_uses_provider_text(study_service, gateway):
    gateway.results["generate_summary"] = ProviderOk(content="  Plants make sugar.  ", provider="llm")
    gateway.results["analyze_text"] = ProviderOk(
        content={"keywords": [{"text": "plants"}], "concepts": [], "categories": [], "sentiment": {"label": "neutral"}},
        provider="nlu",
    )
    result = study_service.summarize(SAMPLE_TEXT, include_analysis=True)

    assert result.summary == "Plants make sugar."
    assert result.source == "llm"
    assert result.analysis["sentiment"] == {"label": "neutral"}


def test_summary_of_empty_document(study_service):
    result = study_service.summarize("")
    assert result.source == "fallback"
    assert "not contain enough readable text" in result.summary


def test_answer_falls_back_to_matching_sentence(study_service):
    answer = study_service.answer(SAMPLE_TEXT, "What does chlorophyll absorb?")
    assert answer.source == "fallback"
    assert answer.answer.startswith("Chlorophyll absorbs")
    assert answer.relevant_sentences == 1


def test_answer_prefers_provider(study_service, gateway):
    gateway.results["answer_question"] = ProviderOk(content="Blue and red light.", provider="llm")
    answer = study_service.answer(SAMPLE_TEXT, "What does chlorophyll absorb?")
    assert answer.answer == "Blue and red light."
    assert answer.model_dump(by_alias=True)["relevantSentences"] == 1


def test_answer_requires_question(study_service):
    with pytest.raises(ValueError):
        study_service.answer(SAMPLE_TEXT, "   ")


def test_podcast_saves_audio_segments(study_service, gateway, audio_store):
    gateway.results["synthesize_speech"] = ProviderOk(content=b"ID3-fake-audio", provider="tts")
    result = study_service.podcast(SAMPLE_TEXT, voice="en-US_MichaelV3Voice")

    assert result.success is True
    podcast = result.podcast
    assert podcast.voice == "en-US_MichaelV3Voice"
    assert podcast.segment_count == 1
    filename = podcast.audio_url.rsplit("/", 1)[1]
    assert audio_store.path_for(filename) is not None
    assert len(podcast.sync_data) == len(SAMPLE_TEXT.split())
    assert podcast.transcript == " ".join(SAMPLE_TEXT.split())


def test_podcast_failure_returns_transcript_and_sync_data(study_service):
    result = study_service.podcast(SAMPLE_TEXT)

    assert result.success is False
    assert result.podcast is None
    assert result.fallback.sync_data
    assert result.fallback.transcript.startswith("Photosynthesis")
    payload = result.model_dump(by_alias=True, exclude_none=True)
    assert "syncData" in payload["fallback"]


def test_podcast_partial_failure_cleans_up_saved_audio(gateway, audio_store, tmp_path):
    long_text = " ".join(["This sentence is repeated to force several narration segments."] * 60)
    service = StudyMaterialService(
        gateway,
        audio_store=audio_store,
        settings=GenerationSettings(max_sync_words=600),
    )
    gateway.results["synthesize_speech"] = [
        ProviderOk(content=b"first", provider="tts"),
        ProviderError(reason="tts synthesize timed out after 1.0s", provider="tts"),
    ]
    result = service.podcast(long_text)

    assert result.success is False
    assert list((tmp_path / "audio").iterdir()) == []


def test_podcast_narrates_whole_document_but_caps_sync_data(gateway, audio_store):
    words = [f"word{i}" for i in range(1000)]
    text = ". ".join(" ".join(words[i : i + 10]) for i in range(0, 1000, 10)) + "."
    gateway.results["synthesize_speech"] = [ProviderOk(content=b"audio", provider="tts") for _ in range(10)]
    service = StudyMaterialService(gateway, audio_store=audio_store)

    result = service.podcast(text)

    narrated = [call[1][0] for call in gateway.calls if call[0] == "synthesize_speech"]
    assert result.success is True
    assert " ".join(narrated).split() == text.split()
    assert all(len(segment) <= 2000 for segment in narrated)
    assert result.podcast.segment_count == len(narrated) > 1
    assert len(result.podcast.sync_data) == 200
