from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from .provider_gateway import ProviderGateway, ProviderOk


PERSONALITIES = {
    "helpful": {
        "name": "Helpful & Friendly",
        "tone": "friendly and supportive",
        "style": "Clear explanations with encouraging language",
        "greeting": "I'm here to help you learn!",
    },
    "academic": {
        "name": "Academic & Formal",
        "tone": "formal and scholarly",
        "style": "Precise academic language with detailed explanations",
        "greeting": "I shall assist you with your academic inquiries.",
    },
    "casual": {
        "name": "Casual & Relaxed",
        "tone": "relaxed and conversational",
        "style": "Easy-going explanations with simple language",
        "greeting": "Hey there! Ready to dive into your document?",
    },
    "encouraging": {
        "name": "Encouraging & Motivating",
        "tone": "motivating and positive",
        "style": "Uplifting language that builds confidence",
        "greeting": "You're doing great! Let's explore this together!",
    },
}

CONVERSATION_MODES = {
    "chat": "general conversation and questions",
    "tutor": "step-by-step teaching and explanation",
    "quiz": "testing knowledge and asking questions",
    "study": "study strategies and learning techniques",
}

DOCUMENT_PREVIEW_CHARS = 1000
MAX_SUGGESTIONS = 4
MAX_ACTIONS = 3

CAPABILITIES = """Your capabilities include:
- Analyzing PDF documents and answering questions about their content
- Creating study materials (summaries, flashcards, quizzes)
- Explaining complex concepts in simple terms
- Providing learning strategies and study tips
- Generating audio narration of documents

Always be helpful, accurate, and educational. If you're not sure about something, say so. Keep responses concise but informative."""

# (trigger words, action type, label, description)
_ACTION_RULES = (
    (("summary", "summarize"), "generate_summary", "Generate Summary",
     "Create a comprehensive summary of the document"),
    (("flashcard", "cards"), "create_flashcards", "Create Flashcards",
     "Generate interactive flashcards for studying"),
    (("quiz", "test", "question"), "generate_quiz", "Generate Quiz",
     "Create a quiz to test your knowledge"),
    (("podcast", "audio", "listen"), "create_podcast", "Create Podcast",
     "Generate an audio version with synchronized highlighting"),
)


def _mentions(message: str, words: Iterable[str]) -> bool:
    return any(word in message for word in words)


class LearningAssistant:
    """Conversational study helper layered over the provider gateway."""

    def __init__(self, gateway: ProviderGateway) -> None:
        self.gateway = gateway
        self._logger = logging.getLogger(__name__)

    def reply(
        self,
        message: str,
        document: Mapping[str, Any] | None = None,
        history: list[Mapping[str, Any]] | None = None,
        personality: str = "helpful",
        mode: str = "chat",
    ) -> dict[str, Any]:
        if not (message or "").strip():
            raise ValueError("Message is required for AI agent interaction.")

        personality = personality if personality in PERSONALITIES else "helpful"
        mode = mode if mode in CONVERSATION_MODES else "chat"

        prompt = self.build_prompt(message, document, history, personality, mode)
        result = self.gateway.agent_reply(prompt)
        if isinstance(result, ProviderOk) and str(result.content or "").strip():
            text, confidence, source = str(result.content).strip(), 0.9, "llm"
        else:
            self._logger.info(
                "fallback_used",
                extra={"operation": "agent_reply", "reason": getattr(result, "reason", "empty provider response")},
            )
            text, confidence = self.fallback_response(message)
            source = "fallback"

        return {
            "message": text,
            "confidence": confidence,
            "source": source,
            "suggestions": self.suggestions(message, document),
            "actions": self.actions(message, document),
            "personality": personality,
            "mode": mode,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "metadata": {
                "documentId": (document or {}).get("fileId"),
                "hasDocument": document is not None,
            },
        }

    def build_prompt(
        self,
        message: str,
        document: Mapping[str, Any] | None,
        history: list[Mapping[str, Any]] | None,
        personality: str,
        mode: str,
    ) -> str:
        persona = PERSONALITIES[personality]
        lines = [
            f"You are an AI Learning Assistant with a {persona['tone']} personality. "
            f"Your communication style: {persona['style']}. "
            f"You are currently in {CONVERSATION_MODES[mode]} mode.",
        ]

        if document is not None:
            lines.extend(
                [
                    "",
                    "Document Context:",
                    f"- Filename: {document.get('filename')}",
                    f"- Pages: {document.get('numPages')}",
                    f"- Text Length: {document.get('textLength')} characters",
                    f"- Upload Date: {document.get('uploadDate')}",
                ]
            )
            preview = (document.get("text") or "")[:DOCUMENT_PREVIEW_CHARS]
            if preview:
                lines.append(f"Document Preview: {preview}...")

        lines.extend(["", CAPABILITIES])

        if history:
            lines.extend(["", "Recent Conversation:"])
            for entry in history:
                role = "Human" if entry.get("type") == "user" else "Assistant"
                lines.append(f"{role}: {entry.get('content', '')}")

        lines.extend(["", f"Human: {message.strip()}", "", "Assistant:"])
        return "\n".join(lines)

    @staticmethod
    def fallback_response(message: str) -> tuple[str, float]:
        lowered = message.lower()
        words = set(lowered.replace("?", " ").replace("!", " ").replace(",", " ").split())

        if words & {"hello", "hi", "hey"}:
            return (
                "Hello! I'm your AI Learning Assistant. I can help you analyze documents, create study "
                "materials, and answer questions. What would you like to explore today?",
                0.8,
            )
        if _mentions(lowered, ("summary", "summarize")):
            return (
                "I can help you create a comprehensive summary! Use the 'Generate Summary' action, or tell "
                "me which sections you're most interested in.",
                0.8,
            )
        if _mentions(lowered, ("quiz", "test", "questions")):
            return (
                "Great idea! I can create interactive quizzes to test your understanding. Use the "
                "'Generate Quiz' action, or tell me what topics you'd like to focus on.",
                0.8,
            )
        if _mentions(lowered, ("study", "learn", "understand")):
            return (
                "I'm here to help you study effectively! I can create flashcards, explain concepts, "
                "generate practice questions, or help you develop study strategies. What specific area "
                "would you like to work on?",
                0.8,
            )
        return (
            f'I understand you\'re asking about: "{message.strip()}". While I\'m having trouble connecting '
            "to my advanced AI services right now, I can still help you with document analysis, creating "
            "study materials, and answering questions. Could you be more specific about what you'd like to know?",
            0.6,
        )

    @staticmethod
    def suggestions(message: str, document: Mapping[str, Any] | None = None) -> list[str]:
        lowered = message.lower()
        suggestions: list[str] = []

        if document is not None:
            suggestions += [
                "Explain the main concepts",
                "Create study questions about this",
                "What are the key takeaways?",
                "Generate a summary",
            ]
        if _mentions(lowered, ("explain", "what is")):
            suggestions += [
                "Can you give me an example?",
                "How does this relate to other concepts?",
                "Why is this important?",
            ]
        if _mentions(lowered, ("help", "study")):
            suggestions += [
                "Create flashcards for this topic",
                "Make a quiz to test my knowledge",
                "Suggest study strategies",
            ]
        if len(suggestions) < 3:
            suggestions += [
                "How can I better understand this?",
                "What should I focus on?",
                "Give me practice questions",
            ]
        return suggestions[:MAX_SUGGESTIONS]

    @staticmethod
    def actions(message: str, document: Mapping[str, Any] | None = None) -> list[dict[str, str]]:
        # Actions operate on a document, so none are offered without one.
        if document is None:
            return []
        lowered = message.lower()
        actions = [
            {"type": action_type, "label": label, "description": description}
            for triggers, action_type, label, description in _ACTION_RULES
            if _mentions(lowered, triggers)
        ]
        return actions[:MAX_ACTIONS]

    @staticmethod
    def capabilities() -> dict[str, Any]:
        return {
            "personalities": [
                {"id": key, "name": value["name"], "greeting": value["greeting"]}
                for key, value in PERSONALITIES.items()
            ],
            "modes": [{"id": key, "description": value} for key, value in CONVERSATION_MODES.items()],
        }
