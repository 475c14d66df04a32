from __future__ import annotations

from pathlib import Path
from typing import Any

import fitz
import pytest

import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pdfmentor import create_app
from pdfmentor.services.audio_store import AudioStore
from pdfmentor.services.provider_gateway import ProviderError
from pdfmentor.services.study_materials import GenerationSettings, StudyMaterialService

SAMPLE_TEXT = (
    "Photosynthesis converts light energy into chemical energy inside plant cells. "
    "Chlorophyll absorbs mostly blue and red light while reflecting green light. "
    "The process releases oxygen as a byproduct of splitting water molecules. "
    "Glucose produced during photosynthesis fuels growth and cellular respiration."
)


class DummyGateway:
    """Stands in for ProviderGateway; every capability fails unless a result is queued."""

    def __init__(self) -> None:
        self.results: dict[str, Any] = {}
        self.calls: list[tuple[str, tuple]] = []

    def _result(self, name: str, *args):
        self.calls.append((name, args))
        result = self.results.get(name)
        if isinstance(result, list):
            return result.pop(0) if result else ProviderError(reason="no result queued", provider="dummy")
        if result is None:
            return ProviderError(reason=f"{name} not configured", provider="dummy")
        return result

    def generate_summary(self, text):
        return self._result("generate_summary", text)

    def generate_flashcards(self, text, count):
        return self._result("generate_flashcards", text, count)

    def generate_quiz(self, text, count):
        return self._result("generate_quiz", text, count)

    def answer_question(self, question, text):
        return self._result("answer_question", question, text)

    def agent_reply(self, prompt):
        return self._result("agent_reply", prompt)

    def extract_keywords(self, text, limit):
        return self._result("extract_keywords", text, limit)

    def analyze_text(self, text):
        return self._result("analyze_text", text)

    def synthesize_speech(self, text, voice="en-US_AllisonV3Voice", audio_format="mp3"):
        return self._result("synthesize_speech", text, voice, audio_format)

    def describe(self) -> dict[str, Any]:
        return {
            "llm": {"configured": False, "model": None},
            "nlu": {"configured": False},
            "tts": {"configured": False},
            "timeout_seconds": 1.0,
        }

    def close(self) -> None:
        pass


@pytest.fixture
def gateway() -> DummyGateway:
    return DummyGateway()


@pytest.fixture
def audio_store(tmp_path: Path) -> AudioStore:
    return AudioStore(str(tmp_path / "audio"))


@pytest.fixture
def study_service(gateway, audio_store) -> StudyMaterialService:
    return StudyMaterialService(
        gateway,
        audio_store=audio_store,
        settings=GenerationSettings(),
        quiz_seed=7,
    )


@pytest.fixture
def sample_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "sample.pdf"
    doc = fitz.open()
    page = doc.new_page()
    page.insert_textbox(fitz.Rect(72, 72, 540, 720), SAMPLE_TEXT, fontsize=11)
    doc.save(pdf_path)
    doc.close()
    return pdf_path


@pytest.fixture
def app(tmp_path: Path, gateway: DummyGateway):
    uploads = tmp_path / "uploads"
    uploads.mkdir()

    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
            "UPLOAD_FOLDER": str(uploads),
            "AUDIO_FOLDER": str(tmp_path / "audio"),
            "LOG_TO_FILE": False,
            "QUIZ_RANDOM_SEED": 11,
            "PROVIDER_GATEWAY": gateway,
        }
    )
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def uploaded_document(client, sample_pdf) -> dict:
    with sample_pdf.open("rb") as handle:
        response = client.post(
            "/api/upload",
            data={"pdf": (handle, "biology-notes.pdf")},
            content_type="multipart/form-data",
        )
    assert response.status_code == 201
    return response.get_json()
