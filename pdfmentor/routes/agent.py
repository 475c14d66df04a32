from flask import Blueprint, current_app, jsonify, request

from ..extensions import db
from ..models import Document
from .api import json_object_body

agent_bp = Blueprint("agent", __name__)


@agent_bp.post("/chat")
def chat_with_agent():
    data = json_object_body()
    message = str(data.get("message") or "").strip()
    if not message:
        return jsonify({"error": "Message is required for AI agent interaction."}), 400

    document_context = None
    document_id = data.get("documentId")
    if document_id:
        document = db.session.get(Document, str(document_id))
        if document is None:
            # The assistant can still help without the document.
            current_app.logger.warning("agent_document_missing", extra={"document_id": document_id})
        else:
            document_context = document.to_dict(include_text=True)

    history = data.get("conversationHistory")
    if not isinstance(history, list):
        history = []

    reply = current_app.config["LEARNING_ASSISTANT"].reply(
        message,
        document=document_context,
        history=[entry for entry in history if isinstance(entry, dict)],
        personality=str(data.get("personality") or "helpful"),
        mode=str(data.get("mode") or "chat"),
    )
    return jsonify(reply)


@agent_bp.get("/capabilities")
def agent_capabilities():
    return jsonify(current_app.config["LEARNING_ASSISTANT"].capabilities())
