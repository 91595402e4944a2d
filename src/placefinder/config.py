import os
from dataclasses import dataclass


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once and handed to the components."""

    google_api_key: str = ""
    foursquare_api_key: str = ""
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    provider_timeout: float = 10.0
    llm_timeout: float = 15.0
    image_fetch_timeout: float = 10.0
    image_max_bytes: int = 10 * 1024 * 1024

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            google_api_key=os.getenv("GOOGLE_PLACES_API_KEY", "").strip(),
            foursquare_api_key=os.getenv("FOURSQUARE_API_KEY", "").strip(),
            gemini_api_key=os.getenv("GEMINI_API_KEY", "").strip(),
            gemini_model=os.getenv("GEMINI_MODEL", "").strip() or cls.gemini_model,
            provider_timeout=_float_env("PROVIDER_TIMEOUT", cls.provider_timeout),
            llm_timeout=_float_env("LLM_TIMEOUT", cls.llm_timeout),
            image_fetch_timeout=_float_env("IMAGE_FETCH_TIMEOUT", cls.image_fetch_timeout),
            image_max_bytes=_int_env("IMAGE_MAX_BYTES", cls.image_max_bytes),
        )
