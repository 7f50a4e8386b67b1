"""Runtime settings resolved from the environment.

The CLI loads ``.env`` (python-dotenv) before calling :meth:`IngestSettings.from_env`;
library callers may construct :class:`IngestSettings` directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_TEXT_MODEL = "gpt-4o-mini"
DEFAULT_VISION_MODEL = "gpt-4o-mini"
DEFAULT_PAGE_DELAY_MS = 3000
DEFAULT_BALANCE_TOLERANCE = 1.0
DEFAULT_DATABASE_URL = "sqlite:///dashboard.db"


def _env_str(name: str) -> str | None:
    val = os.getenv(name)
    if val is None:
        return None
    val = val.strip()
    return val or None


def _env_number(name: str, default: float | None) -> float | None:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True, slots=True)
class IngestSettings:
    """Provider, pacing and reconciliation settings.

    Attributes
    ----------
    api_key:
        Provider API key (``OPENAI_API_KEY``). ``None`` lets the OpenAI SDK
        resolve it on its own.
    base_url:
        Optional OpenAI-compatible endpoint (``DASHBOARD_LLM_BASE_URL``), e.g.
        ``https://api.groq.com/openai/v1``.
    text_model / vision_model:
        Models used for text-only and image-bearing requests.
    page_delay_ms:
        Pause before every statement-page call after the first.
    page_timeout_s:
        Optional per-page request timeout in seconds.
    balance_tolerance:
        Differences strictly below this many currency units are not corrected.
    database_url:
        SQLAlchemy URL for the key-value store used by the CLI.
    """

    api_key: str | None = None
    base_url: str | None = None
    text_model: str = DEFAULT_TEXT_MODEL
    vision_model: str = DEFAULT_VISION_MODEL
    page_delay_ms: int = DEFAULT_PAGE_DELAY_MS
    page_timeout_s: float | None = None
    balance_tolerance: float = DEFAULT_BALANCE_TOLERANCE
    database_url: str = DEFAULT_DATABASE_URL

    def __post_init__(self) -> None:
        if isinstance(self.page_delay_ms, bool) or self.page_delay_ms < 0:
            raise ValueError("page_delay_ms must be a non-negative integer")
        if self.page_timeout_s is not None and self.page_timeout_s <= 0:
            raise ValueError("page_timeout_s must be positive when set")
        if self.balance_tolerance < 0:
            raise ValueError("balance_tolerance must be non-negative")
        if not self.text_model or not self.vision_model:
            raise ValueError("text_model and vision_model must be non-empty")

    @classmethod
    def from_env(cls) -> IngestSettings:
        delay = _env_number("DASHBOARD_PAGE_DELAY_MS", DEFAULT_PAGE_DELAY_MS)
        tolerance = _env_number("DASHBOARD_BALANCE_TOLERANCE", DEFAULT_BALANCE_TOLERANCE)
        return cls(
            api_key=_env_str("OPENAI_API_KEY"),
            base_url=_env_str("DASHBOARD_LLM_BASE_URL"),
            text_model=_env_str("DASHBOARD_TEXT_MODEL") or DEFAULT_TEXT_MODEL,
            vision_model=_env_str("DASHBOARD_VISION_MODEL") or DEFAULT_VISION_MODEL,
            page_delay_ms=int(delay if delay is not None else DEFAULT_PAGE_DELAY_MS),
            page_timeout_s=_env_number("DASHBOARD_PAGE_TIMEOUT_S", None),
            balance_tolerance=float(
                tolerance if tolerance is not None else DEFAULT_BALANCE_TOLERANCE
            ),
            database_url=_env_str("DASHBOARD_DATABASE_URL") or DEFAULT_DATABASE_URL,
        )


__all__ = ["IngestSettings"]
