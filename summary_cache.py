"""
summary_cache.py — Read-through cache for the leaderboard summary.

A summary is reused until it is ``SUMMARY_TTL_SECONDS`` old or until a write
invalidates it. When a recompute fails the previous summary is served while
it is still fresh, then a Redis snapshot from another process, else the
error propagates.
"""

import json
import logging
import threading
import time

import redis

import config
from data_processor import generate_summary
from errors import UpstreamFetchError

logger = logging.getLogger(__name__)

REDIS_DATA_KEY = "leaderboard:summary"
REDIS_TS_KEY = "leaderboard:ts"

# ── State ────────────────────────────────────────────────────────────────────
_lock = threading.Lock()
_summary = None
_computed_at = 0.0          # time.time() of the last successful pass
_stale = False


# ── Redis helpers ────────────────────────────────────────────────────────────
def _get_redis():
    if not config.REDIS_URL:
        return None
    try:
        client = redis.from_url(config.REDIS_URL, decode_responses=True, socket_timeout=5)
        client.ping()
        return client
    except redis.RedisError as e:
        logger.warning("Redis unavailable: %s", e)
        return None


def _save_redis(summary, computed_at):
    client = _get_redis()
    if not client:
        return
    try:
        js = json.dumps(summary, separators=(",", ":"))
        ttl = max(1, int(config.SUMMARY_TTL_SECONDS))
        client.set(REDIS_DATA_KEY, js, ex=ttl)
        client.set(REDIS_TS_KEY, repr(computed_at), ex=ttl)
        logger.info("Saved %d bytes to Redis", len(js))
    except redis.RedisError as e:
        logger.warning("Redis save error: %s", e)


def _load_redis():
    client = _get_redis()
    if not client:
        return None, None
    try:
        data = client.get(REDIS_DATA_KEY)
        ts = client.get(REDIS_TS_KEY)
    except redis.RedisError as e:
        logger.warning("Redis load error: %s", e)
        return None, None
    if not data or not ts:
        return None, None
    try:
        snapshot, snapshot_at = json.loads(data), float(ts)
    except ValueError as e:
        logger.warning("Corrupt Redis snapshot ignored: %s", e)
        return None, None
    logger.info("Loaded %d bytes from Redis", len(data))
    return snapshot, snapshot_at


# ── Cache ────────────────────────────────────────────────────────────────────
def _is_fresh(computed_at, now):
    return now - computed_at < config.SUMMARY_TTL_SECONDS


def get_summary(now=None) -> dict:
    """Return the current summary, recomputing when stale or invalidated."""
    global _summary, _computed_at, _stale
    now = time.time() if now is None else now
    with _lock:
        if _summary is not None and not _stale and _is_fresh(_computed_at, now):
            return _summary
        previous, previous_at = _summary, _computed_at

    try:
        summary = generate_summary()
    except UpstreamFetchError:
        if previous is not None and _is_fresh(previous_at, now):
            logger.warning("Refresh failed, serving previous summary", exc_info=True)
            return previous
        snapshot, snapshot_at = _load_redis()
        if snapshot is not None and _is_fresh(snapshot_at, now):
            logger.warning("Refresh failed, serving Redis snapshot", exc_info=True)
            return snapshot
        raise

    with _lock:
        _summary = summary
        _computed_at = now
        _stale = False
    _save_redis(summary, now)
    return summary


def invalidate():
    """Force the next ``get_summary`` call to recompute."""
    global _stale
    with _lock:
        _stale = True
    client = _get_redis()
    if client:
        try:
            client.delete(REDIS_DATA_KEY, REDIS_TS_KEY)
        except redis.RedisError as e:
            logger.warning("Redis invalidate error: %s", e)
    logger.info("Summary cache invalidated")


def last_refresh():
    with _lock:
        return _computed_at if _summary is not None else None


def reset():
    """Drop all cached state."""
    global _summary, _computed_at, _stale
    with _lock:
        _summary = None
        _computed_at = 0.0
        _stale = False
