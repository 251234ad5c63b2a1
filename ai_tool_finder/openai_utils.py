"""Shared helpers for OpenAI chat completion calls."""

import json
import logging
from typing import Any
from typing import Optional

import httpx
from langsmith.wrappers import wrap_openai
from openai import OpenAI

from .config import Settings

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5.0


def build_openai_client(settings: Settings) -> Optional[OpenAI]:
    """Create the OpenAI client, or ``None`` when no API key is configured.

    The client never retries; a slow or failed call is the caller's signal to
    fall back.
    """
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; search will use local ranking only")
        return None

    client = OpenAI(
        api_key=settings.openai_api_key,
        timeout=httpx.Timeout(settings.search_timeout, connect=min(CONNECT_TIMEOUT, settings.search_timeout)),
        max_retries=0,
    )
    return wrap_openai(client)


def strip_json_fences(value: str) -> str:
    """Remove Markdown code fences if present.

    Handles both ```json and plain ``` fences.
    """
    value = value.strip()
    if value.startswith("```"):
        first_newline = value.find("\n")
        if first_newline != -1:
            value = value[first_newline + 1 :]
        if value.endswith("```"):
            value = value[:-3]
    return value.strip()


def parse_json_response(raw: str, context: str = "response") -> Optional[Any]:
    """Parse JSON content from model output, returning ``None`` when it is not JSON."""
    try:
        return json.loads(strip_json_fences(raw))
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse %s JSON: %s", context, exc)
        return None


def extract_message_text(completion: Any) -> str:
    """Return the first choice's message content, or an empty string."""
    choices = getattr(completion, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None) or ""
