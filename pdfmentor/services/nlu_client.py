from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx


NLU_API_VERSION = "2022-04-07"

DEFAULT_FEATURES: dict[str, Any] = {
    "concepts": {"limit": 5},
    "keywords": {"limit": 10, "sentiment": True, "emotion": True},
    "categories": {"limit": 3},
    "sentiment": {"document": True},
    "emotion": {"document": True},
}


@dataclass(frozen=True)
class Keyword:
    text: str
    relevance: float


class WatsonNluClient:
    """Thin client for the Watson Natural Language Understanding analyze API."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        request_timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key or ""
        self.base_url = (base_url or "").rstrip("/")
        self._request_timeout = request_timeout
        self._client = client or httpx.Client(timeout=httpx.Timeout(request_timeout, connect=10.0))
        self._logger = logging.getLogger(__name__)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.base_url)

    def analyze(self, text: str, features: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self.is_configured:
            raise RuntimeError("NLU credentials missing; set NLU_API_KEY and NLU_URL.")
        payload = {
            "text": text,
            "features": {**DEFAULT_FEATURES, **(features or {})},
        }
        self._logger.info("Analyzing text with NLU (%d characters)", len(text or ""))
        response = self._client.post(
            f"{self.base_url}/v1/analyze",
            params={"version": NLU_API_VERSION},
            json=payload,
            auth=("apikey", self.api_key),
            timeout=self._request_timeout,
        )
        response.raise_for_status()
        result = response.json() or {}
        return {
            "keywords": result.get("keywords") or [],
            "concepts": result.get("concepts") or [],
            "categories": result.get("categories") or [],
            "sentiment": result.get("sentiment"),
            "emotion": result.get("emotion"),
        }

    def extract_keywords(self, text: str, limit: int = 10) -> list[Keyword]:
        result = self.analyze(text, {"keywords": {"limit": limit, "sentiment": True}})
        keywords: list[Keyword] = []
        for item in result["keywords"]:
            label = str(item.get("text") or "").strip()
            if not label:
                continue
            try:
                relevance = float(item.get("relevance") or 0.0)
            except (TypeError, ValueError):
                relevance = 0.0
            keywords.append(Keyword(text=label, relevance=relevance))
        return keywords[:limit]
