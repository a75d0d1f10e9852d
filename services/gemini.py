# services/gemini.py
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from typing import Any

from google import genai
from google.genai import types
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from services.db import GenerationFailure

_LOG = logging.getLogger(__name__)

# Gemini finish reasons → the vocabulary the plan validators speak
_FINISH_REASONS = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
}


@dataclass(frozen=True)
class LLMResponse:
    content: str | None
    finish_reason: str | None
    usage: dict[str, Any] = field(default_factory=dict)


# ───────────── API Key & Client ─────────────
@functools.lru_cache(maxsize=1)
def _client() -> genai.Client:
    if not settings.gemini_api_key:
        raise RuntimeError("GEMINI_API_KEY not set in environment")
    return genai.Client(api_key=settings.gemini_api_key)


def _finish_reason(resp: types.GenerateContentResponse) -> str | None:
    if not resp.candidates:
        return None
    raw = resp.candidates[0].finish_reason
    if raw is None:
        return None
    name = getattr(raw, "name", str(raw))
    return _FINISH_REASONS.get(name, name.lower())


# ───────────── JSON generation (async) ─────────────
async def generate_json(
    system_prompt: str,
    user_prompt: str,
    response_schema: dict[str, Any] | None = None,
    temperature: float | None = None,
    max_output_tokens: int | None = None,
) -> LLMResponse:
    """One JSON-mode completion. Transport errors propagate to the caller."""
    config = types.GenerateContentConfig(
        system_instruction=system_prompt,
        response_mime_type="application/json",
        response_schema=response_schema,
        temperature=settings.generation_temperature if temperature is None else temperature,
        max_output_tokens=max_output_tokens or settings.generation_max_tokens,
    )
    resp = await _client().aio.models.generate_content(
        model=settings.gemini_model,
        contents=[user_prompt],
        config=config,
    )
    usage = resp.usage_metadata.model_dump(exclude_none=True) if resp.usage_metadata else {}
    result = LLMResponse(content=resp.text, finish_reason=_finish_reason(resp), usage=usage)
    _LOG.info("Gemini finish_reason=%s usage=%s", result.finish_reason, usage)
    return result


# ───────────── Error Logging ─────────────
async def log_failure_to_db(
    db: AsyncSession,
    user_id: str,
    plan_kind: str,
    stage: str,
    error: str,
    raw_output: str = "",
) -> None:
    """
    Persist a generation failure for later inspection. Never shown to
    the client.
    """
    failure = GenerationFailure(
        user_id=user_id,
        plan_kind=plan_kind,
        stage=stage,
        error_message=error,
        raw_output=(raw_output or "")[:4000],
    )
    db.add(failure)
    await db.commit()
