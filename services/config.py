"""Runtime configuration.

Settings are read from the environment once, at the process edge, and then
passed explicitly to every service constructor.
"""

import os
from dataclasses import dataclass
from typing import Optional

from .models import MexcCredentials

DEFAULT_MEXC_BASE_URL = "https://api.mexc.com"
DEFAULT_MODEL = "gemini/gemini-2.5-flash"


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes")


@dataclass
class MexcConfig:
    """Connection settings for the MEXC spot REST API."""
    base_url: str = DEFAULT_MEXC_BASE_URL
    recv_window: Optional[int] = None
    timeout: float = 10.0
    quote_asset: str = "USDT"


@dataclass
class LLMConfig:
    """Model selection for guided acquisition and final analysis."""
    model: str = DEFAULT_MODEL
    analysis_model: str = DEFAULT_MODEL
    timeout: float = 60.0


@dataclass
class AppConfig:
    mexc: MexcConfig
    llm: LLMConfig
    credentials: Optional[MexcCredentials] = None
    retain_rejected_images: bool = True

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build the configuration from environment variables."""
        recv_window = _env_int("MEXC_RECV_WINDOW", 0)
        mexc = MexcConfig(
            base_url=os.getenv("MEXC_BASE_URL", DEFAULT_MEXC_BASE_URL).rstrip("/"),
            recv_window=recv_window or None,
            timeout=_env_float("MEXC_TIMEOUT", 10.0),
            quote_asset=os.getenv("MEXC_QUOTE_ASSET", "USDT"),
        )

        # Vision model is used for both phases unless overridden
        model = os.getenv("LITELLM_VISION_MODEL", os.getenv("LITELLM_MODEL", DEFAULT_MODEL))
        llm = LLMConfig(
            model=model,
            analysis_model=os.getenv("LITELLM_ANALYSIS_MODEL", model),
            timeout=_env_float("LITELLM_TIMEOUT", 60.0),
        )

        api_key = os.getenv("MEXC_API_KEY")
        api_secret = os.getenv("MEXC_API_SECRET")
        credentials = None
        if api_key and api_secret:
            credentials = MexcCredentials(api_key=api_key, secret_key=api_secret)

        return cls(
            mexc=mexc,
            llm=llm,
            credentials=credentials,
            retain_rejected_images=_env_bool("RETAIN_REJECTED_IMAGES", True),
        )
