import os
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_INSTANCE_ROOT = Path(
    os.getenv("PDFMENTOR_INSTANCE_PATH", PROJECT_ROOT / "instance")
)
DEFAULT_DB_PATH = Path(
    os.getenv("PDFMENTOR_DB_PATH", DEFAULT_INSTANCE_ROOT / "pdfmentor.db")
)
DEFAULT_UPLOAD_PATH = Path(
    os.getenv("PDFMENTOR_UPLOAD_PATH", DEFAULT_INSTANCE_ROOT / "uploads")
)
DEFAULT_AUDIO_PATH = Path(
    os.getenv("PDFMENTOR_AUDIO_PATH", DEFAULT_INSTANCE_ROOT / "audio")
)
DEFAULT_LOG_DIR = Path(
    os.getenv("PDFMENTOR_LOG_DIR", DEFAULT_INSTANCE_ROOT / "logs")
)


def _env_flag(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"0", "false", "no", "off"}:
        return False
    if normalized in {"1", "true", "yes", "on"}:
        return True
    return default


def _env_int(value: str | None):
    if value is None or not value.strip():
        return None
    return int(value)


def _resolve_database_uri() -> str:
    env_url = (os.getenv("DATABASE_URL") or "").strip()
    if env_url:
        return env_url
    return f"sqlite:///{DEFAULT_DB_PATH}"


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = _resolve_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", str(DEFAULT_UPLOAD_PATH))
    AUDIO_FOLDER = os.getenv("AUDIO_FOLDER", str(DEFAULT_AUDIO_PATH))
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_FILE_SIZE", str(10 * 1024 * 1024)))  # 10MB uploads

    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL_NAME = os.getenv("GEMINI_MODEL_NAME", "gemini-2.5-flash")
    NLU_API_KEY = os.getenv("NLU_API_KEY", "")
    NLU_URL = os.getenv("NLU_URL", "")
    TTS_API_KEY = os.getenv("TTS_API_KEY", "")
    TTS_URL = os.getenv("TTS_URL", "")
    TTS_DEFAULT_VOICE = os.getenv("TTS_DEFAULT_VOICE", "en-US_AllisonV3Voice")
    PROVIDER_TIMEOUT_SECONDS = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30"))
    PROVIDER_MAX_WORKERS = int(os.getenv("PROVIDER_MAX_WORKERS", "4"))

    MIN_CONTENT_CHARS = int(os.getenv("MIN_CONTENT_CHARS", "100"))
    MAX_ITEMS_PER_REQUEST = int(os.getenv("MAX_ITEMS_PER_REQUEST", "20"))
    QUIZ_FALLBACK_STRATEGY = os.getenv("QUIZ_FALLBACK_STRATEGY", "rotation")
    QUIZ_RANDOM_SEED = _env_int(os.getenv("QUIZ_RANDOM_SEED"))
    SYNC_WORDS_PER_MINUTE = float(os.getenv("SYNC_WORDS_PER_MINUTE", "150"))
    SYNC_WORDS_PER_PAGE = int(os.getenv("SYNC_WORDS_PER_PAGE", "100"))
    SYNC_MAX_WORDS = int(os.getenv("SYNC_MAX_WORDS", "200"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
    LOG_TO_STDOUT = _env_flag(os.getenv("LOG_TO_STDOUT"), default=True)
    LOG_TO_FILE = _env_flag(os.getenv("LOG_TO_FILE"), default=True)
    LOG_VERBOSITY = os.getenv("LOG_VERBOSITY", "essential")
    LOG_DIR = os.getenv("LOG_DIR", str(DEFAULT_LOG_DIR))
    LOG_FILE = os.getenv("LOG_FILE", str(DEFAULT_LOG_DIR / "pdfmentor.log"))
    LOG_FILE_MAX_BYTES = int(os.getenv("LOG_FILE_MAX_BYTES", str(10 * 1024 * 1024)))
    LOG_FILE_BACKUP_COUNT = int(os.getenv("LOG_FILE_BACKUP_COUNT", "5"))
    REQUEST_ID_HEADER = os.getenv("REQUEST_ID_HEADER", "X-Request-ID")
