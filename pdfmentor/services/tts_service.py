import requests

from .text_analysis import segment_sentences


DEFAULT_VOICE = "en-US_AllisonV3Voice"
SEGMENT_CHAR_LIMIT = 2000

AVAILABLE_VOICES = {
    "en-US_AllisonV3Voice": {"name": "Allison", "gender": "female", "language": "English (US)"},
    "en-US_LisaV3Voice": {"name": "Lisa", "gender": "female", "language": "English (US)"},
    "en-US_MichaelV3Voice": {"name": "Michael", "gender": "male", "language": "English (US)"},
    "en-US_KevinV3Voice": {"name": "Kevin", "gender": "male", "language": "English (US)"},
    "en-GB_KateV3Voice": {"name": "Kate", "gender": "female", "language": "English (UK)"},
    "en-GB_JamesV3Voice": {"name": "James", "gender": "male", "language": "English (UK)"},
}

AUDIO_MIME_TYPES = {
    "mp3": "audio/mp3",
    "wav": "audio/wav",
    "ogg": "audio/ogg;codecs=opus",
}


class TextToSpeechClient:
    def __init__(self, api_key: str, base_url: str, request_timeout: float = 60.0) -> None:
        self.api_key = api_key or ""
        self.base_url = (base_url or "").rstrip("/")
        self.request_timeout = request_timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.base_url)

    def synthesize(self, text: str, voice: str = DEFAULT_VOICE, audio_format: str = "mp3") -> bytes:
        """
        Returns raw audio bytes for a single chunk of narration.
        Callers split long documents with split_text_into_segments first.
        """
        if not self.is_configured:
            raise RuntimeError("TTS credentials missing; set TTS_API_KEY and TTS_URL.")

        headers = {
            "Accept": AUDIO_MIME_TYPES.get(audio_format, AUDIO_MIME_TYPES["mp3"]),
            "Content-Type": "application/json",
        }
        resp = requests.post(
            f"{self.base_url}/v1/synthesize",
            params={"voice": voice or DEFAULT_VOICE},
            json={"text": text},
            headers=headers,
            auth=("apikey", self.api_key),
            timeout=self.request_timeout,
        )

        if resp.status_code != 200:
            raise RuntimeError(f"TTS API error ({resp.status_code}): {resp.text}")

        return resp.content


def split_text_into_segments(text: str, max_length: int = SEGMENT_CHAR_LIMIT) -> list[str]:
    """Pack sentences into chunks no longer than max_length characters."""
    sentences = segment_sentences(text or "", min_length=1)
    segments: list[str] = []
    current = ""

    for sentence in sentences:
        while len(sentence) > max_length:
            if current:
                segments.append(current)
                current = ""
            segments.append(sentence[:max_length])
            sentence = sentence[max_length:].strip()
        if not sentence:
            continue
        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) > max_length:
            segments.append(current)
            current = sentence
        else:
            current = candidate

    if current:
        segments.append(current)
    return segments


def estimate_audio_seconds(text: str) -> int:
    # Roughly ten characters of narration per second.
    return max(1, -(-len(text) // 10))
