"""
ai_gateway.py — Chat completions with a Pollinations primary and an
OpenRouter fallback.
"""

import logging

import requests

import config
from errors import AllProvidersFailedError
from openrouter_auth import credential_store

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1"
POLLINATIONS_MODEL = "openai"
OPENROUTER_MODEL = "meta-llama/llama-3.1-8b-instruct:free"
TEMPERATURE = 0.3


def _extract_content(resp):
    """Return the first choice's text, or None for any unusable response."""
    if not resp.ok:
        return None
    try:
        data = resp.json()
    except ValueError:
        return None
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    return content or None


def _call_pollinations(messages, max_tokens):
    headers = {"Content-Type": "application/json"}
    if config.POLLINATIONS_API_KEY:
        headers["Authorization"] = f"Bearer {config.POLLINATIONS_API_KEY}"
    try:
        resp = requests.post(
            f"{config.POLLINATIONS_BASE_URL}/chat/completions",
            headers=headers,
            json={"model": POLLINATIONS_MODEL, "messages": messages,
                  "max_tokens": max_tokens, "temperature": TEMPERATURE},
            timeout=config.AI_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.warning("Pollinations error: %s — trying OpenRouter", e)
        return None
    content = _extract_content(resp)
    if content is None:
        logger.warning("Pollinations failed (%s), trying OpenRouter fallback", resp.status_code)
    return content


def _call_openrouter(messages, max_tokens, api_key):
    try:
        resp = requests.post(
            f"{OPENROUTER_URL}/chat/completions",
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}",
                "HTTP-Referer": config.OPENROUTER_REFERER,
                "X-Title": "SASA Leaderboard",
            },
            json={"model": OPENROUTER_MODEL, "messages": messages,
                  "max_tokens": max_tokens, "temperature": TEMPERATURE},
            timeout=config.AI_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error("OpenRouter error: %s", e)
        return None
    content = _extract_content(resp)
    if content is None:
        logger.error("OpenRouter also failed: %s %s", resp.status_code, resp.text[:500])
    return content


def call_ai(messages, max_tokens=1000, api_key=None) -> str:
    """Return the completion text, trying each provider exactly once.

    *api_key* is the caller's own OpenRouter credential; without it the
    process credential store is consulted.
    """
    content = _call_pollinations(messages, max_tokens)
    if content is not None:
        return content

    key = api_key or credential_store.get()
    if not key:
        raise AllProvidersFailedError("Primary provider failed and no OpenRouter key is available")

    content = _call_openrouter(messages, max_tokens, key)
    if content is not None:
        return content
    raise AllProvidersFailedError()
