import pytest

import config
import summary_cache
from openrouter_auth import credential_store


def make_row(sales_person="", client="", status="assigned", date="", code="", source="regular",
             phone="", email=""):
    return {
        "code": code,
        "status": status,
        "clientName": client,
        "clientPhone": phone,
        "clientEmail": email,
        "salesPerson": sales_person,
        "dateAssigned": date,
        "source": source,
    }


@pytest.fixture(autouse=True)
def _isolate(monkeypatch):
    """Fixed sheet ids, no Redis, and empty process state for every test."""
    for attr, value in {
        "SHEET_ID_12M": "reg-12", "SHEET_ID_3M": "reg-3", "SHEET_ID_6M": "reg-6",
        "CASH_SHEET_ID_12M": "cash-12", "CASH_SHEET_ID_3M": "cash-3", "CASH_SHEET_ID_6M": "cash-6",
        "REDIS_URL": "", "N8N_WEBHOOK_URL": "", "SUMMARY_TTL_SECONDS": 30.0,
        "POLLINATIONS_API_KEY": "", "APP_TIMEZONE": "UTC",
    }.items():
        monkeypatch.setattr(config, attr, value)
    monkeypatch.setattr(credential_store, "fallback_key", "")
    credential_store.set(None)
    summary_cache.reset()
    yield
    summary_cache.reset()
    credential_store.set(None)
