"""
openrouter_auth.py — OpenRouter OAuth2 (PKCE) helpers and the credential store
used by the fallback AI provider.
"""

import base64
import hashlib
import logging
import secrets
import threading
from urllib.parse import urlencode

import requests
from flask import g, has_request_context

import config
from errors import OAuthExchangeError

logger = logging.getLogger(__name__)

AUTH_URL = "https://openrouter.ai/auth"
KEYS_URL = "https://openrouter.ai/api/v1/auth/keys"
CHALLENGE_METHOD = "S256"

VERIFIER_COOKIE = "openrouter_code_verifier"
KEY_COOKIE = "openrouter_oauth_key"
VERIFIER_MAX_AGE = 600                  # 10 minutes
KEY_MAX_AGE = 60 * 60 * 24 * 365        # 1 year


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


# ── PKCE ─────────────────────────────────────────────────────────────────────
def generate_code_verifier() -> str:
    return _b64url(secrets.token_bytes(32))


def generate_code_challenge(verifier: str) -> str:
    return _b64url(hashlib.sha256(verifier.encode("utf-8")).digest())


def get_auth_url(callback_url: str, code_challenge: str) -> str:
    params = {
        "callback_url": callback_url,
        "code_challenge": code_challenge,
        "code_challenge_method": CHALLENGE_METHOD,
    }
    return f"{AUTH_URL}?{urlencode(params)}"


def exchange_code_for_key(code: str, code_verifier: str, timeout=None) -> dict:
    """Trade an authorization code for an API key: ``{"key": ..., "user_id": ...}``."""
    try:
        resp = requests.post(
            KEYS_URL,
            json={"code": code, "code_verifier": code_verifier,
                  "code_challenge_method": CHALLENGE_METHOD},
            timeout=timeout or config.AI_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        raise OAuthExchangeError(None, str(e)) from e

    if not resp.ok:
        raise OAuthExchangeError(resp.status_code, resp.text)
    try:
        data = resp.json()
    except ValueError as e:
        raise OAuthExchangeError(resp.status_code, resp.text) from e
    if not isinstance(data, dict) or not data.get("key"):
        raise OAuthExchangeError(resp.status_code, "response did not contain a key")
    logger.info("OpenRouter OAuth exchange succeeded (user %s)", data.get("user_id", "?"))
    return data


# ── Credential store ─────────────────────────────────────────────────────────
REQUEST_KEY_ATTR = "openrouter_key"


def bind_request_key(key):
    """Attach the caller's own OpenRouter key (from their cookie) to this request."""
    setattr(g, REQUEST_KEY_ATTR, key or None)


class CredentialStore:
    """OpenRouter key lookup: the current request's own key, then the key
    obtained by an OAuth callback in this process, then the static key.

    The request key lives on ``flask.g`` and dies with the request, so one
    caller's cookie is never seen by another caller.
    """

    def __init__(self, fallback_key=""):
        self.fallback_key = fallback_key
        self._key = None
        self._lock = threading.Lock()

    def get(self) -> str:
        if has_request_context():
            key = g.get(REQUEST_KEY_ATTR)
            if key:
                return key
        with self._lock:
            return self._key or self.fallback_key or ""

    def set(self, key: str):
        with self._lock:
            self._key = key

    def has_oauth_key(self) -> bool:
        with self._lock:
            return bool(self._key)


credential_store = CredentialStore(config.OPENROUTER_API_KEY)
