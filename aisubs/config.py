import os
from typing import Final


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


TRANSLATION_LLM_BASE_URL: Final[str] = os.getenv("TRANSLATION_LLM_BASE_URL", "https://api.openai.com/v1")
TRANSLATION_LLM_MODEL_NAME: Final[str] = os.getenv("TRANSLATION_LLM_MODEL_NAME", "gpt-4o-mini")
TRANSLATION_LLM_API_KEY: Final[str] = os.getenv("OPENAI_API_KEY", "")
TRANSLATION_LLM_TIMEOUT: Final[float] = _env_float("TRANSLATION_LLM_TIMEOUT", 120.0)

TRANSLATION_BATCH_SIZE: Final[int] = _env_int("TRANSLATION_BATCH_SIZE", 30)
TRANSLATION_CONCURRENCY_LIMIT: Final[int] = _env_int("TRANSLATION_CONCURRENCY_LIMIT", 5)
TRANSLATION_TARGET_LANGUAGE: Final[str] = os.getenv("TRANSLATION_TARGET_LANGUAGE", "polish")
TRANSLATION_FAIL_ON_PARTIAL: Final[bool] = _env_bool("TRANSLATION_FAIL_ON_PARTIAL", False)

FFMPEG_BINARY: Final[str] = os.getenv("FFMPEG_BINARY", "ffmpeg")
FFPROBE_BINARY: Final[str] = os.getenv("FFPROBE_BINARY", "ffprobe")
FFMPEG_TIMEOUT: Final[float] = _env_float("FFMPEG_TIMEOUT", 600.0)

SERVICE_HOST: Final[str] = os.getenv("AISUBS_HOST", "0.0.0.0")
SERVICE_PORT: Final[int] = _env_int("AISUBS_PORT", 8080)
LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO").upper()
