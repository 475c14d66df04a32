from __future__ import annotations

from google import genai
from google.genai import types
from pydantic import BaseModel, Field
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential


DOCUMENT_CHAR_LIMIT = 6000


class GeneratedCard(BaseModel):
    question: str = Field(..., description="Short question a student should be able to answer")
    answer: str = Field(..., description="Answer taken from the document text")


class GeneratedDeck(BaseModel):
    cards: list[GeneratedCard]


class GeminiStudyGenerator:
    def __init__(
        self,
        api_key: str | None,
        model_name: str,
        client: genai.Client | None = None,
        temperature: float = 0.4,
    ) -> None:
        self.api_key = api_key or ""
        self.model_name = model_name
        self.temperature = temperature
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _client_or_create(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise RuntimeError("GEMINI_API_KEY is missing; set it before generating study material.")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(Exception),
    )
    def _call_model(self, prompt: str, schema: type[BaseModel] | None = None):
        client = self._client_or_create()
        if schema is not None:
            config = types.GenerateContentConfig(
                temperature=self.temperature,
                response_mime_type="application/json",
                response_schema=schema,
            )
        else:
            config = types.GenerateContentConfig(temperature=self.temperature)
        response = client.models.generate_content(
            model=self.model_name,
            contents=prompt,
            config=config,
        )
        if schema is not None:
            return response.parsed
        return response.text or ""

    @staticmethod
    def _document_block(text: str) -> str:
        excerpt = (text or "")[:DOCUMENT_CHAR_LIMIT]
        return (
            "DOCUMENT TEXT STARTS:\n"
            "-----------------\n"
            f"{excerpt}\n"
            "-----------------\n"
            "DOCUMENT TEXT ENDS.\n"
        )

    def build_summary_prompt(self, text: str) -> str:
        return (
            "You are a study assistant. Write a concise summary of the document below in "
            "3-5 sentences. Use only facts stated in the document.\n\n"
            f"{self._document_block(text)}\n"
            "Summary:"
        )

    def build_flashcard_prompt(self, text: str, count: int) -> str:
        return (
            f"Create exactly {count} study flashcards from the document below.\n"
            "Each card has a `question` and an `answer`. Answers must come from the document text; "
            "do not invent facts. Prefer definitions, key terms and stated figures.\n\n"
            f"{self._document_block(text)}"
        )

    def build_quiz_prompt(self, text: str, count: int) -> str:
        return (
            f"Based on the document below, create exactly {count} multiple-choice questions.\n"
            "Return ONLY a JSON array. Each element must look like:\n"
            '  {"question": "...", "options": ["...", "...", "...", "..."], '
            '"correctIndex": 0, "explanation": "..."}\n'
            "Rules:\n"
            "1. Exactly 4 non-empty options per question.\n"
            "2. correctIndex is the 0-based index of the correct option.\n"
            "3. The explanation quotes or paraphrases the document.\n\n"
            f"{self._document_block(text)}"
        )

    def build_answer_prompt(self, question: str, text: str) -> str:
        return (
            "Answer the question using only the document below. If the document does not contain "
            "the answer, say so in one sentence.\n\n"
            f"{self._document_block(text)}\n"
            f"Question: {question.strip()}\n"
            "Answer:"
        )

    def generate_summary(self, text: str) -> str:
        return self._call_model(self.build_summary_prompt(text)).strip()

    def generate_flashcards(self, text: str, count: int) -> GeneratedDeck:
        return self._call_model(self.build_flashcard_prompt(text, count), schema=GeneratedDeck)

    def generate_quiz(self, text: str, count: int) -> str:
        return self._call_model(self.build_quiz_prompt(text, count))

    def answer_question(self, question: str, text: str) -> str:
        return self._call_model(self.build_answer_prompt(question, text)).strip()

    def generate_reply(self, prompt: str) -> str:
        return self._call_model(prompt).strip()
