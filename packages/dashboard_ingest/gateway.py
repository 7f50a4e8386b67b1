"""Language-model gateway: the boundary to the external provider.

:class:`OpenAIChatGateway` talks to any OpenAI-compatible Chat Completions
endpoint (OpenAI itself, or e.g. Groq via ``DASHBOARD_LLM_BASE_URL``). It
requests JSON output, uses a text model for text-only input and a vision model
when an image is attached. No retries are performed here; callers see
:class:`~dashboard_ingest.errors.ProviderQuotaError` on rate limits and
:class:`~dashboard_ingest.errors.ProviderError` for everything else.
"""

from __future__ import annotations

import time
from typing import Any, Protocol

import openai
from openai import OpenAI

from .documents import to_data_uri
from .errors import ProviderError, ProviderQuotaError
from .logging_setup import get_logger
from .settings import IngestSettings

DEFAULT_IMAGE_PROMPT = "Analyze this image and extract data."
_MAX_TOKENS = 6000

_logger = get_logger("dashboard_ingest.gateway")


class LanguageModelGateway(Protocol):
    def send(
        self,
        system_prompt: str | None,
        user_text: str | None = None,
        image: bytes | str | None = None,
        *,
        timeout: float | None = None,
    ) -> str: ...


def build_messages(
    system_prompt: str | None,
    user_text: str | None,
    image: bytes | str | None,
) -> list[dict[str, Any]]:
    """Return Chat Completions messages; images become ``image_url`` parts."""

    messages: list[dict[str, Any]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    if image is not None:
        messages.append(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": user_text or DEFAULT_IMAGE_PROMPT},
                    {"type": "image_url", "image_url": {"url": to_data_uri(image)}},
                ],
            }
        )
    else:
        messages.append({"role": "user", "content": user_text or ""})
    return messages


def _reply_text(completion: Any) -> str:
    try:
        content = completion.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        content = None
    return content if isinstance(content, str) and content else "{}"


class OpenAIChatGateway:
    """Chat Completions gateway with lazy client creation."""

    def __init__(self, settings: IngestSettings | None = None) -> None:
        self._settings = settings or IngestSettings.from_env()
        self._client: OpenAI | None = None

    def _get_client(self) -> OpenAI:
        if self._client is None:
            try:
                self._client = OpenAI(
                    api_key=self._settings.api_key, base_url=self._settings.base_url
                )
            except openai.OpenAIError as e:
                raise ProviderError(f"cannot create provider client: {e}") from e
        return self._client

    def send(
        self,
        system_prompt: str | None,
        user_text: str | None = None,
        image: bytes | str | None = None,
        *,
        timeout: float | None = None,
    ) -> str:
        model = self._settings.vision_model if image is not None else self._settings.text_model
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": build_messages(system_prompt, user_text, image),
            "temperature": 0,
            "max_tokens": _MAX_TOKENS,
            "response_format": {"type": "json_object"},
        }
        if timeout is not None:
            kwargs["timeout"] = timeout

        client = self._get_client()
        t0 = time.perf_counter()
        try:
            completion = client.chat.completions.create(**kwargs)
        except openai.RateLimitError as e:
            _logger.error("gateway:quota model=%s status=%s", model, e.status_code)
            raise ProviderQuotaError(f"provider rate limit: {e}", status_code=e.status_code) from e
        except openai.APIStatusError as e:
            _logger.error("gateway:failed model=%s status=%s", model, e.status_code)
            raise ProviderError(
                f"provider error {e.status_code}: {e.message}", status_code=e.status_code
            ) from e
        except openai.OpenAIError as e:
            _logger.error("gateway:failed model=%s error=%s", model, e.__class__.__name__)
            raise ProviderError(f"provider unreachable: {e}") from e

        _logger.info(
            "gateway:done model=%s image=%s latency_ms=%.2f",
            model,
            image is not None,
            (time.perf_counter() - t0) * 1000.0,
        )
        return _reply_text(completion)


__all__ = ["DEFAULT_IMAGE_PROMPT", "LanguageModelGateway", "OpenAIChatGateway", "build_messages"]
