from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Union

from .gemini_runner import GeminiStudyGenerator
from .nlu_client import WatsonNluClient
from .tts_service import DEFAULT_VOICE, TextToSpeechClient


@dataclass(frozen=True)
class ProviderSettings:
    gemini_api_key: str = ""
    gemini_model_name: str = "gemini-2.5-flash"
    nlu_api_key: str = ""
    nlu_url: str = ""
    tts_api_key: str = ""
    tts_url: str = ""
    timeout_seconds: float = 30.0
    max_workers: int = 4

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ProviderSettings":
        return cls(
            gemini_api_key=str(config.get("GEMINI_API_KEY") or ""),
            gemini_model_name=str(config.get("GEMINI_MODEL_NAME") or cls.gemini_model_name),
            nlu_api_key=str(config.get("NLU_API_KEY") or ""),
            nlu_url=str(config.get("NLU_URL") or ""),
            tts_api_key=str(config.get("TTS_API_KEY") or ""),
            tts_url=str(config.get("TTS_URL") or ""),
            timeout_seconds=float(config.get("PROVIDER_TIMEOUT_SECONDS") or cls.timeout_seconds),
            max_workers=max(1, int(config.get("PROVIDER_MAX_WORKERS") or cls.max_workers)),
        )


@dataclass(frozen=True)
class ProviderOk:
    content: Any
    provider: str


@dataclass(frozen=True)
class ProviderError:
    reason: str
    provider: str


ProviderResult = Union[ProviderOk, ProviderError]


class ProviderGateway:
    """The only component that talks to the language model, NLU and TTS services.

    Every call runs on a worker thread bounded by ``settings.timeout_seconds``
    and comes back as a :class:`ProviderOk` or :class:`ProviderError`; nothing
    raises past this class.
    """

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        llm: GeminiStudyGenerator | None = None,
        nlu: WatsonNluClient | None = None,
        tts: TextToSpeechClient | None = None,
    ) -> None:
        self.settings = settings
        self.llm = llm if llm is not None else GeminiStudyGenerator(
            api_key=settings.gemini_api_key,
            model_name=settings.gemini_model_name,
        )
        self.nlu = nlu if nlu is not None else WatsonNluClient(
            api_key=settings.nlu_api_key,
            base_url=settings.nlu_url,
            request_timeout=settings.timeout_seconds,
        )
        self.tts = tts if tts is not None else TextToSpeechClient(
            api_key=settings.tts_api_key,
            base_url=settings.tts_url,
            request_timeout=settings.timeout_seconds,
        )
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_workers,
            thread_name_prefix="provider-call",
        )
        self._logger = logging.getLogger(__name__)

    def generate_summary(self, text: str) -> ProviderResult:
        return self._run("llm", self.llm, "summary", "generate_summary", text)

    def generate_flashcards(self, text: str, count: int) -> ProviderResult:
        return self._run("llm", self.llm, "flashcards", "generate_flashcards", text, count)

    def generate_quiz(self, text: str, count: int) -> ProviderResult:
        return self._run("llm", self.llm, "quiz", "generate_quiz", text, count)

    def answer_question(self, question: str, text: str) -> ProviderResult:
        return self._run("llm", self.llm, "answer", "answer_question", question, text)

    def agent_reply(self, prompt: str) -> ProviderResult:
        return self._run("llm", self.llm, "agent_reply", "generate_reply", prompt)

    def extract_keywords(self, text: str, limit: int) -> ProviderResult:
        return self._run("nlu", self.nlu, "keywords", "extract_keywords", text, limit)

    def analyze_text(self, text: str) -> ProviderResult:
        return self._run("nlu", self.nlu, "analyze", "analyze", text)

    def synthesize_speech(self, text: str, voice: str = DEFAULT_VOICE, audio_format: str = "mp3") -> ProviderResult:
        return self._run("tts", self.tts, "synthesize", "synthesize", text, voice, audio_format)

    def describe(self) -> dict[str, Any]:
        return {
            "llm": {
                "configured": self._configured(self.llm),
                "model": getattr(self.llm, "model_name", None),
            },
            "nlu": {"configured": self._configured(self.nlu)},
            "tts": {"configured": self._configured(self.tts)},
            "timeout_seconds": self.settings.timeout_seconds,
        }

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    @staticmethod
    def _configured(client: Any) -> bool:
        return bool(client is not None and getattr(client, "is_configured", False))

    @staticmethod
    def _invoke(client: Any, method_name: str, *args: Any) -> Any:
        method: Callable[..., Any] = getattr(client, method_name)
        return method(*args)

    def _run(self, provider: str, client: Any, operation: str, method_name: str, *args: Any) -> ProviderResult:
        if not self._configured(client):
            return ProviderError(reason=f"{provider} provider is not configured", provider=provider)

        future = self._executor.submit(self._invoke, client, method_name, *args)
        try:
            content = future.result(timeout=self.settings.timeout_seconds)
        except FutureTimeout:
            future.cancel()
            self._logger.warning(
                "provider_call_timed_out",
                extra={"provider": provider, "operation": operation, "timeout": self.settings.timeout_seconds},
            )
            return ProviderError(
                reason=f"{provider} {operation} timed out after {self.settings.timeout_seconds}s",
                provider=provider,
            )
        except Exception as exc:
            self._logger.warning(
                "provider_call_failed",
                extra={"provider": provider, "operation": operation, "error": str(exc)},
            )
            return ProviderError(reason=f"{provider} {operation} failed: {exc}", provider=provider)
        return ProviderOk(content=content, provider=provider)
