"""Text generation helpers backed by the Gemini API."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Dict, Optional

from google import genai
from google.genai import types

from .config import GEMINI_API_KEY, MODEL_NAME, ConfigurationError

logger = logging.getLogger(__name__)

_client: Optional[genai.Client] = None


class GenerationError(RuntimeError):
    """The model call itself failed."""


def get_client() -> genai.Client:
    """Return the shared Gemini client, creating it on first use."""

    global _client
    if _client is None:
        if not GEMINI_API_KEY:
            # The app starts without a key so CRUD routes stay usable; the
            # first generation call is where the missing key becomes fatal.
            raise ConfigurationError(
                "Gemini client not configured; missing GEMINI_API_KEY"
            )
        _client = genai.Client(api_key=GEMINI_API_KEY)
    return _client


def _response_text(response: Any) -> str:
    text = getattr(response, "text", None) or ""
    if text:
        return text

    candidates = getattr(response, "candidates", None) or []
    if candidates and getattr(candidates[0], "content", None):
        for part in candidates[0].content.parts or []:
            if getattr(part, "text", None):
                text += part.text
    return text


async def _call_model(
    prompt: str,
    config: types.GenerateContentConfig,
    model: str,
    context: str,
) -> Any:
    client = get_client()
    contents = [types.Content(role="user", parts=[types.Part.from_text(text=prompt)])]

    try:
        return await asyncio.to_thread(
            client.models.generate_content,
            model=model,
            contents=contents,
            config=config,
        )
    except Exception as exc:
        logger.warning("%s call failed on %s: %s", context.capitalize(), model, exc)
        raise GenerationError(f"{context} call failed: {exc}") from exc


async def generate_text(
    prompt: str,
    *,
    system: Optional[str] = None,
    model: str = MODEL_NAME,
    temperature: float = 0.8,
    max_output_tokens: Optional[int] = None,
    context: str = "generation",
) -> str:
    """Run a single-turn generation and return the stripped text.

    Raises ``GenerationError`` when the call itself fails.  An empty string
    means the model answered with nothing; callers pick their own fallback.
    Calls are never retried.
    """
    config = types.GenerateContentConfig(
        temperature=temperature,
        system_instruction=system,
        max_output_tokens=max_output_tokens,
    )
    response = await _call_model(prompt, config, model, context)
    return _response_text(response).strip()


def _strip_code_fences(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = re.sub(r"^```[\w-]*\s*", "", stripped, count=1)
        if stripped.endswith("```"):
            stripped = stripped[: stripped.rfind("```")]
    return stripped.strip()


async def generate_json(
    prompt: str,
    *,
    system: Optional[str] = None,
    model: str = MODEL_NAME,
    context: str = "json generation",
) -> Dict[str, Any]:
    """Ask for a JSON object; unparseable output yields an empty dict."""

    config = types.GenerateContentConfig(
        temperature=0.7,
        system_instruction=system,
        response_mime_type="application/json",
    )
    response = await _call_model(prompt, config, model, context)

    raw = _strip_code_fences(_response_text(response) or "{}")
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("%s returned invalid JSON", context.capitalize())
        return {}
    return parsed if isinstance(parsed, dict) else {}
