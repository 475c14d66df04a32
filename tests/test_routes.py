import io
import json
from pathlib import Path

from pdfmentor.extensions import db
from pdfmentor.models import Document
from pdfmentor.services.provider_gateway import ProviderOk


def _add_document(app, text: str, document_id: str = "shortdoc") -> str:
    with app.app_context():
        db.session.add(
            Document(
                id=document_id,
                filename="short.pdf",
                stored_name=f"{document_id}.pdf",
                page_count=1,
                text_length=len(text),
                raw_text=text,
            )
        )
        db.session.commit()
    return document_id


def test_upload_returns_document_metadata(uploaded_document):
    assert uploaded_document["success"] is True
    assert uploaded_document["filename"] == "biology-notes.pdf"
    assert uploaded_document["numPages"] == 1
    assert uploaded_document["textLength"] > 100
    assert len(uploaded_document["fileId"]) == 32


def test_upload_accepts_document_field(client, sample_pdf):
    with sample_pdf.open("rb") as handle:
        response = client.post(
            "/api/upload",
            data={"document": (handle, "notes.pdf")},
            content_type="multipart/form-data",
        )
    assert response.status_code == 201


def test_upload_validation(client):
    response = client.post("/api/upload", data={}, content_type="multipart/form-data")
    assert response.status_code == 400
    assert response.get_json()["error"] == "No file uploaded."

    response = client.post(
        "/api/upload",
        data={"pdf": (io.BytesIO(b"plain text"), "notes.txt")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert response.get_json()["error"] == "Only PDF files are allowed."


def test_upload_of_corrupt_pdf_is_rejected(client, app):
    response = client.post(
        "/api/upload",
        data={"pdf": (io.BytesIO(b"not really a pdf"), "broken.pdf")},
        content_type="multipart/form-data",
    )
    payload = response.get_json()
    assert response.status_code == 400
    assert payload["status_code"] == 400
    assert "PDF parsing failed" in payload["error"]
    with app.app_context():
        assert Document.query.count() == 0


def test_document_listing_and_lookup(client, uploaded_document):
    listing = client.get("/api/documents").get_json()
    assert listing["count"] == 1
    assert listing["documents"][0]["fileId"] == uploaded_document["fileId"]
    assert "text" not in listing["documents"][0]

    detail = client.get(f"/api/document/{uploaded_document['fileId']}").get_json()
    assert "Photosynthesis" in detail["text"]

    missing = client.get("/api/document/does-not-exist")
    assert missing.status_code == 404


def test_view_and_download(client, uploaded_document):
    file_id = uploaded_document["fileId"]
    view = client.get(f"/api/view/{file_id}")
    assert view.status_code == 200
    assert view.mimetype == "application/pdf"
    assert view.data.startswith(b"%PDF")

    download = client.get(f"/api/download/{file_id}")
    assert "attachment" in download.headers["Content-Disposition"]
    assert "biology-notes.pdf" in download.headers["Content-Disposition"]


def test_delete_document(client, uploaded_document, app):
    file_id = uploaded_document["fileId"]
    response = client.delete(f"/api/document/{file_id}")
    assert response.get_json() == {"deleted": True, "fileId": file_id}
    assert client.get(f"/api/document/{file_id}").status_code == 404
    assert list(Path(app.config["UPLOAD_FOLDER"]).iterdir()) == []


def test_generation_with_unknown_file_id(client):
    for path in ("/api/generate-summary", "/api/generate-flashcards", "/api/quiz/generate", "/api/generate-podcast"):
        response = client.post(path, json={"fileId": "nope"})
        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid file ID"}


def test_summary_fallback(client, uploaded_document):
    response = client.post(
        "/api/generate-summary",
        json={"fileId": uploaded_document["fileId"], "includeAnalysis": True},
    )
    payload = response.get_json()
    assert response.status_code == 200
    assert payload["source"] == "fallback"
    assert payload["summary"]
    assert payload["analysis"]["keywords"]
    assert payload["metadata"]["fileId"] == uploaded_document["fileId"]


def test_flashcards_fallback(client, uploaded_document):
    response = client.post(
        "/api/generate-flashcards",
        json={"fileId": uploaded_document["fileId"], "count": 4, "useNLU": False},
    )
    payload = response.get_json()
    assert response.status_code == 200
    assert 1 <= len(payload["flashcards"]) <= 4
    assert [card["id"] for card in payload["flashcards"]] == list(range(1, len(payload["flashcards"]) + 1))
    assert payload["metadata"]["source"] == "fallback"
    assert payload["metadata"]["totalCards"] == len(payload["flashcards"])


def test_flashcards_reject_bad_count(client, uploaded_document):
    response = client.post(
        "/api/generate-flashcards",
        json={"fileId": uploaded_document["fileId"], "count": "many"},
    )
    assert response.status_code == 400


def test_short_documents_return_422(client, app):
    document_id = _add_document(app, "Too short.")
    for path in ("/api/generate-flashcards", "/api/quiz/generate"):
        response = client.post(path, json={"fileId": document_id})
        payload = response.get_json()
        assert response.status_code == 422
        assert payload["status_code"] == 422
        assert "too short" in payload["error"]


def test_quiz_fallback_serializes_camel_case(client, uploaded_document):
    response = client.post("/api/quiz/generate", json={"fileId": uploaded_document["fileId"], "count": 3})
    payload = response.get_json()
    assert response.status_code == 200
    assert len(payload["quiz"]) == 3
    for question in payload["quiz"]:
        assert set(question) == {"id", "question", "options", "correctIndex", "explanation"}
        assert len(question["options"]) == 4
    assert payload["metadata"]["strategy"] == "rotation"


def test_quiz_from_provider(client, uploaded_document, gateway):
    quiz = [
        {
            "question": "What does chlorophyll absorb?",
            "options": ["Blue and red light", "Green light", "Sound", "Heat"],
            "correctIndex": 0,
            "explanation": "Chlorophyll absorbs mostly blue and red light.",
        }
    ]
    gateway.results["generate_quiz"] = ProviderOk(content=json.dumps(quiz), provider="llm")
    payload = client.post(
        "/api/quiz/generate",
        json={"fileId": uploaded_document["fileId"], "count": 1},
    ).get_json()
    assert payload["metadata"]["source"] == "llm"
    assert payload["quiz"][0]["id"] == 1


def test_podcast_validation_and_fallback(client, uploaded_document):
    file_id = uploaded_document["fileId"]
    assert client.post("/api/generate-podcast", json={"fileId": file_id, "voice": "robot"}).status_code == 400
    assert client.post("/api/generate-podcast", json={"fileId": file_id, "format": "flac"}).status_code == 400

    payload = client.post("/api/generate-podcast", json={"fileId": file_id}).get_json()
    assert payload["success"] is False
    assert payload["fallback"]["syncData"][0]["originalText"]
    assert "podcast" not in payload


def test_podcast_audio_is_served(client, uploaded_document, gateway):
    gateway.results["synthesize_speech"] = ProviderOk(content=b"ID3fake", provider="tts")
    payload = client.post(
        "/api/generate-podcast",
        json={"fileId": uploaded_document["fileId"], "voice": "en-US_LisaV3Voice"},
    ).get_json()

    assert payload["success"] is True
    assert payload["podcast"]["voice"] == "en-US_LisaV3Voice"
    audio = client.get(payload["podcast"]["audioUrl"])
    assert audio.status_code == 200
    assert audio.data == b"ID3fake"
    assert audio.mimetype == "audio/mp3"


def test_audio_route_rejects_unsafe_names(client):
    assert client.get("/api/audio/..%2Fsecret.mp3").status_code == 404
    assert client.get("/api/audio/unknown.mp3").status_code == 404


def test_chat_endpoint(client, uploaded_document):
    assert client.post("/api/chat", json={"fileId": uploaded_document["fileId"]}).status_code == 400

    payload = client.post(
        "/api/chat",
        json={"fileId": uploaded_document["fileId"], "question": "What does chlorophyll absorb?"},
    ).get_json()
    assert payload["source"] == "fallback"
    assert payload["answer"].startswith("Chlorophyll absorbs")
    assert payload["relevantSentences"] == 1


def test_agent_chat(client, uploaded_document, gateway):
    assert client.post("/api/ai-agent/chat", json={"message": "  "}).status_code == 400

    gateway.results["agent_reply"] = ProviderOk(content="Let's review photosynthesis.", provider="llm")
    payload = client.post(
        "/api/ai-agent/chat",
        json={
            "message": "Can you quiz me?",
            "documentId": uploaded_document["fileId"],
            "conversationHistory": [{"type": "user", "content": "Hi"}, "ignored"],
            "personality": "casual",
            "mode": "quiz",
        },
    ).get_json()
    assert payload["message"] == "Let's review photosynthesis."
    assert payload["metadata"]["hasDocument"] is True
    assert payload["actions"][0]["type"] == "generate_quiz"
    prompt = gateway.calls[-1][1][0]
    assert "biology-notes.pdf" in prompt


def test_agent_chat_with_missing_document(client):
    payload = client.post("/api/ai-agent/chat", json={"message": "hello", "documentId": "gone"}).get_json()
    assert payload["metadata"]["hasDocument"] is False
    assert payload["source"] == "fallback"


def test_agent_capabilities(client):
    payload = client.get("/api/ai-agent/capabilities").get_json()
    assert len(payload["personalities"]) == 4


def test_voices_and_provider_config(client):
    voices = client.get("/api/voices").get_json()["voices"]
    assert len(voices) == 6
    assert [voice["id"] for voice in voices if voice["default"]] == ["en-US_AllisonV3Voice"]

    config = client.get("/api/provider-config").get_json()
    assert config["llm"]["configured"] is False


def test_health_banner_and_request_headers(client):
    response = client.get("/api/health", headers={"X-Request-ID": "req-123"})
    assert response.get_json()["status"] == "OK"
    assert response.headers["X-Request-ID"] == "req-123"
    assert response.headers["X-Response-Time"].endswith("ms")

    banner = client.get("/").get_json()
    assert banner["status"] == "running"


def test_unknown_route_returns_json(client):
    response = client.get("/api/nope", headers={"X-Request-ID": "req-404"})
    assert response.status_code == 404
    assert response.get_json() == {
        "error": "This page was not found.",
        "status_code": 404,
        "request_id": "req-404",
    }


def test_non_object_json_bodies_are_rejected(client, uploaded_document):
    for path in ("/api/quiz/generate", "/api/generate-summary", "/api/chat", "/api/ai-agent/chat"):
        response = client.post(path, json=["x"])
        assert response.status_code == 400
        assert response.get_json()["error"] == "Request body must be a JSON object."

    response = client.post(
        "/api/generate-podcast",
        json={"fileId": uploaded_document["fileId"], "voice": 42},
    )
    assert response.status_code == 400
    assert response.get_json() == {"error": "Unsupported voice."}
