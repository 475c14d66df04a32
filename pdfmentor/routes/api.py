from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from flask import Blueprint, current_app, jsonify, request, send_file
from werkzeug.exceptions import BadRequest
from werkzeug.utils import secure_filename

from ..extensions import db
from ..models import Document, new_document_id
from ..services.pdf_parser import SUPPORTED_EXTENSIONS, parse_pdf
from ..services.tts_service import AUDIO_MIME_TYPES, AVAILABLE_VOICES

api_bp = Blueprint("api", __name__)

ALLOWED_EXTENSIONS = {ext.lstrip(".") for ext in SUPPORTED_EXTENSIONS}
UPLOAD_FIELD_NAMES = ("pdf", "document")
DEFAULT_ITEM_COUNT = 5


def _get_study_service():
    return current_app.config["STUDY_SERVICE"]


def _get_gateway():
    return current_app.config["PROVIDER_GATEWAY"]


def allowed_file(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def _normalize_bool(value, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no"}:
            return False
    if isinstance(value, (int, float)):
        return bool(value)
    return fallback


def _parse_count(value) -> int | None:
    if value is None or value == "":
        return DEFAULT_ITEM_COUNT
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def json_object_body() -> dict:
    """Return the JSON body as a dict; a missing body counts as empty."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise BadRequest("Request body must be a JSON object.")
    return payload


def _not_found(entity: str):
    return jsonify({"error": f"{entity} not found."}), 404


def _invalid_file_id():
    return jsonify({"error": "Invalid file ID"}), 400


def _document_path(document: Document) -> Path:
    return Path(current_app.config["UPLOAD_FOLDER"]) / document.stored_name


def _document_for_generation(payload: dict) -> Document | None:
    file_id = payload.get("fileId")
    if not file_id or not isinstance(file_id, str):
        return None
    return db.session.get(Document, file_id)


def _metadata(document: Document, **extra) -> dict:
    return {
        "fileId": document.id,
        "filename": document.filename,
        "numPages": document.page_count,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        **extra,
    }


@api_bp.route("/upload", methods=["POST"])
def upload_document():
    upload_file = None
    for field in UPLOAD_FIELD_NAMES:
        if field in request.files:
            upload_file = request.files[field]
            break

    if upload_file is None:
        return jsonify({"error": "No file uploaded."}), 400

    if upload_file.filename == "":
        return jsonify({"error": "Empty filename."}), 400

    if not allowed_file(upload_file.filename):
        return jsonify({"error": "Only PDF files are allowed."}), 400

    filename = secure_filename(upload_file.filename) or "document.pdf"
    document_id = new_document_id()
    stored_name = f"{document_id}.pdf"
    save_path = Path(current_app.config["UPLOAD_FOLDER"]) / stored_name
    upload_file.save(save_path)

    try:
        parsed = parse_pdf(save_path)
    except Exception:
        save_path.unlink(missing_ok=True)
        raise

    document = Document(
        id=document_id,
        filename=filename,
        stored_name=stored_name,
        file_size=save_path.stat().st_size,
        page_count=parsed.page_count,
        text_length=len(parsed.text),
        raw_text=parsed.text,
    )
    db.session.add(document)
    db.session.commit()

    current_app.logger.info(
        "document_uploaded",
        extra={
            "document_id": document.id,
            "original_filename": filename,
            "pages": parsed.page_count,
            "text_length": len(parsed.text),
        },
    )

    payload = document.to_dict()
    payload.update({"success": True, "message": "PDF uploaded and processed successfully"})
    return jsonify(payload), 201


@api_bp.route("/documents", methods=["GET"])
def list_documents():
    documents = Document.query.order_by(Document.uploaded_at.desc()).all()
    return jsonify({"documents": [doc.to_dict() for doc in documents], "count": len(documents)})


@api_bp.route("/document/<string:document_id>", methods=["GET"])
def get_document(document_id: str):
    document = db.session.get(Document, document_id)
    if not document:
        return _not_found("Document")
    return jsonify(document.to_dict(include_text=True))


@api_bp.route("/document/<string:document_id>", methods=["DELETE"])
def delete_document(document_id: str):
    document = db.session.get(Document, document_id)
    if not document:
        return _not_found("Document")
    _document_path(document).unlink(missing_ok=True)
    db.session.delete(document)
    db.session.commit()
    current_app.logger.info("document_deleted", extra={"document_id": document_id})
    return jsonify({"deleted": True, "fileId": document_id})


def _send_document(document_id: str, *, as_attachment: bool):
    document = db.session.get(Document, document_id)
    if not document:
        return _not_found("Document")
    path = _document_path(document)
    if not path.exists():
        return _not_found("PDF file")
    return send_file(
        path,
        mimetype="application/pdf",
        as_attachment=as_attachment,
        download_name=document.filename,
    )


@api_bp.route("/view/<string:document_id>", methods=["GET"])
def view_document(document_id: str):
    return _send_document(document_id, as_attachment=False)


@api_bp.route("/download/<string:document_id>", methods=["GET"])
def download_document(document_id: str):
    return _send_document(document_id, as_attachment=True)


@api_bp.route("/generate-summary", methods=["POST"])
def generate_summary():
    payload = json_object_body()
    document = _document_for_generation(payload)
    if not document:
        return _invalid_file_id()

    include_analysis = _normalize_bool(payload.get("includeAnalysis"), False)
    result = _get_study_service().summarize(document.raw_text, include_analysis=include_analysis)
    response = result.model_dump(by_alias=True, exclude_none=True)
    response["metadata"] = _metadata(document, textLength=document.text_length)
    return jsonify(response)


@api_bp.route("/generate-flashcards", methods=["POST"])
def generate_flashcards():
    payload = json_object_body()
    document = _document_for_generation(payload)
    if not document:
        return _invalid_file_id()

    count = _parse_count(payload.get("count"))
    if count is None:
        return jsonify({"error": "count must be an integer."}), 400
    use_nlu = _normalize_bool(payload.get("useNLU"), True)

    batch = _get_study_service().flashcards(document.raw_text, count=count, use_nlu=use_nlu)
    return jsonify(
        {
            "flashcards": [card.model_dump(exclude_none=True) for card in batch.flashcards],
            "metadata": _metadata(
                document,
                method=batch.method,
                source=batch.source,
                totalCards=len(batch.flashcards),
            ),
        }
    )


@api_bp.route("/quiz/generate", methods=["POST"])
def generate_quiz():
    payload = json_object_body()
    document = _document_for_generation(payload)
    if not document:
        return _invalid_file_id()

    count = _parse_count(payload.get("count"))
    if count is None:
        return jsonify({"error": "count must be an integer."}), 400

    batch = _get_study_service().quiz(document.raw_text, count=count, filename=document.filename)
    return jsonify(
        {
            "quiz": [question.model_dump(by_alias=True) for question in batch.questions],
            "metadata": _metadata(
                document,
                source=batch.source,
                strategy=batch.strategy,
                questionCount=len(batch.questions),
            ),
        }
    )


@api_bp.route("/generate-podcast", methods=["POST"])
def generate_podcast():
    payload = json_object_body()
    document = _document_for_generation(payload)
    if not document:
        return _invalid_file_id()

    voice = str(payload.get("voice") or current_app.config.get("TTS_DEFAULT_VOICE") or "").strip() or None
    if voice and voice not in AVAILABLE_VOICES:
        return jsonify({"error": "Unsupported voice."}), 400
    audio_format = str(payload.get("format") or "mp3").strip().lower()
    if audio_format not in AUDIO_MIME_TYPES:
        return jsonify({"error": "Unsupported audio format."}), 400

    result = _get_study_service().podcast(document.raw_text, voice=voice, audio_format=audio_format)
    response = result.model_dump(by_alias=True, exclude_none=True)
    response["metadata"] = _metadata(document, textLength=document.text_length)
    return jsonify(response)


@api_bp.route("/chat", methods=["POST"])
def chat_with_document():
    payload = json_object_body()
    question = str(payload.get("question") or "").strip()
    if not question:
        return jsonify({"error": "Question is required."}), 400
    document = _document_for_generation(payload)
    if not document:
        return _invalid_file_id()

    answer = _get_study_service().answer(document.raw_text, question)
    return jsonify(answer.model_dump(by_alias=True))


@api_bp.route("/provider-config", methods=["GET"])
def provider_config():
    return jsonify(_get_gateway().describe())


@api_bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()})
