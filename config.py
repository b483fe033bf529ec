"""
config.py — Environment configuration for the voucher leaderboard service.
"""

import os

PLANS = ("12month", "3month", "6month")
PLAN_LABELS = {"12month": "12 Month", "3month": "3 Month", "6month": "6 Month"}

# ── Google Sheets ────────────────────────────────────────────────────────────
SHEET_ID_12M = os.environ.get("SHEET_ID_1M", "")
SHEET_ID_3M = os.environ.get("SHEET_ID_3M", "")
SHEET_ID_6M = os.environ.get("SHEET_ID_6M", "")

CASH_SHEET_ID_12M = os.environ.get("CASH_SHEET_ID_1M", "")
CASH_SHEET_ID_3M = os.environ.get("CASH_SHEET_ID_3M", "")
CASH_SHEET_ID_6M = os.environ.get("CASH_SHEET_ID_6M", "")

GOOGLE_SERVICE_ACCOUNT_EMAIL = os.environ.get("GOOGLE_SERVICE_ACCOUNT_EMAIL", "")
GOOGLE_PRIVATE_KEY = os.environ.get("GOOGLE_PRIVATE_KEY", "").replace("\\n", "\n")
GOOGLE_SERVICE_ACCOUNT_JSON = os.environ.get("GOOGLE_SERVICE_ACCOUNT_JSON", "")

SHEET_TAB = os.environ.get("SHEET_TAB", "Sheet1")

# ── AI providers ─────────────────────────────────────────────────────────────
POLLINATIONS_BASE_URL = os.environ.get("POLLINATIONS_BASE_URL", "https://gen.pollinations.ai/v1")
POLLINATIONS_API_KEY = os.environ.get("POLLINATIONS_API_KEY", "")
OPENROUTER_API_KEY = os.environ.get("OPENROUTER_API_KEY", "")
OPENROUTER_REFERER = os.environ.get("OPENROUTER_REFERER", "https://sasa-leaderboard.vercel.app")
N8N_WEBHOOK_URL = os.environ.get("N8N_WEBHOOK_URL", "")
AI_TIMEOUT_SECONDS = float(os.environ.get("AI_TIMEOUT_SECONDS", "15"))

# ── Cache / scheduling ───────────────────────────────────────────────────────
SUMMARY_TTL_SECONDS = float(os.environ.get("SUMMARY_TTL_SECONDS", "30"))
WARM_INTERVAL_SECONDS = int(os.environ.get("WARM_INTERVAL_SECONDS", "0"))
REDIS_URL = os.environ.get("REDIS_URL", "")

# ── Runtime ──────────────────────────────────────────────────────────────────
APP_TIMEZONE = os.environ.get("APP_TIMEZONE", "UTC")
APP_ENV = os.environ.get("APP_ENV", os.environ.get("FLASK_ENV", "development"))
PORT = int(os.environ.get("PORT", "8080"))


def is_production() -> bool:
    return APP_ENV.lower() == "production"


def sheet_ids() -> dict:
    return {"12month": SHEET_ID_12M, "3month": SHEET_ID_3M, "6month": SHEET_ID_6M}


def cash_sheet_ids() -> dict:
    return {"12month": CASH_SHEET_ID_12M, "3month": CASH_SHEET_ID_3M, "6month": CASH_SHEET_ID_6M}
