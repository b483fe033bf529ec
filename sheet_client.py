"""
sheet_client.py — Thin Google Sheets access layer for the voucher sheets.

Every voucher sheet uses the same seven-column layout on its first tab:
code, status, client name, client phone, client email, sales person,
date assigned. Row 1 is a header.
"""

import json
import logging
import threading

import gspread
import requests
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials

import config
from errors import UpstreamFetchError

logger = logging.getLogger(__name__)

READ_SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]
WRITE_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"

VOUCHER_RANGE = "A:G"
RECORD_RANGE = "A:Z"

_SHEET_ERRORS = (gspread.exceptions.GSpreadException, GoogleAuthError,
                 requests.exceptions.RequestException)

_lock = threading.Lock()
_clients = {}


def _service_account_info() -> dict:
    if config.GOOGLE_SERVICE_ACCOUNT_JSON:
        try:
            return json.loads(config.GOOGLE_SERVICE_ACCOUNT_JSON)
        except json.JSONDecodeError as e:
            raise UpstreamFetchError("GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON") from e
    if not config.GOOGLE_SERVICE_ACCOUNT_EMAIL or not config.GOOGLE_PRIVATE_KEY:
        raise UpstreamFetchError("Google service account credentials are not configured")
    return {
        "type": "service_account",
        "client_email": config.GOOGLE_SERVICE_ACCOUNT_EMAIL,
        "private_key": config.GOOGLE_PRIVATE_KEY,
        "token_uri": TOKEN_URI,
    }


def get_client(write: bool = False) -> gspread.Client:
    """Return a cached gspread client, read-only unless *write* is set."""
    scope_key = "write" if write else "read"
    with _lock:
        client = _clients.get(scope_key)
        if client is not None:
            return client
        try:
            creds = Credentials.from_service_account_info(
                _service_account_info(), scopes=WRITE_SCOPES if write else READ_SCOPES)
        except ValueError as e:
            raise UpstreamFetchError(f"Invalid service account credentials: {e}") from e
        client = gspread.authorize(creds)
        _clients[scope_key] = client
        logger.info("Google Sheets %s client ready", scope_key)
        return client


def fetch_values(sheet_id: str, cell_range: str = VOUCHER_RANGE, write: bool = False) -> list[list[str]]:
    """Read a range from the first tab, header row included."""
    if not sheet_id:
        raise UpstreamFetchError("Sheet id is not configured")
    a1 = f"{config.SHEET_TAB}!{cell_range}"
    logger.info("Fetching %s from sheet %s …", a1, sheet_id[:12])
    try:
        spreadsheet = get_client(write).open_by_key(sheet_id)
        result = spreadsheet.values_get(a1)
    except _SHEET_ERRORS as e:
        raise UpstreamFetchError(f"Failed to read sheet {sheet_id[:12]}: {e}") from e
    rows = result.get("values", [])
    logger.info("  → %d rows", len(rows))
    return rows


def update_row(sheet_id: str, cell_range: str, values: list) -> None:
    """Overwrite one row range (e.g. ``B5:G5``) with USER_ENTERED semantics."""
    a1 = f"{config.SHEET_TAB}!{cell_range}"
    logger.info("Writing %s on sheet %s", a1, sheet_id[:12])
    try:
        spreadsheet = get_client(write=True).open_by_key(sheet_id)
        spreadsheet.values_update(
            a1,
            params={"valueInputOption": "USER_ENTERED"},
            body={"values": [values]},
        )
    except _SHEET_ERRORS as e:
        raise UpstreamFetchError(f"Failed to write sheet {sheet_id[:12]}: {e}") from e


def _cell(row, idx):
    return row[idx] if idx < len(row) and row[idx] is not None else ""


def to_voucher_row(raw: list, source: str) -> dict:
    return {
        "code": str(_cell(raw, 0)),
        "status": str(_cell(raw, 1)).strip().lower(),
        "clientName": str(_cell(raw, 2)).strip(),
        "clientPhone": str(_cell(raw, 3)).strip(),
        "clientEmail": str(_cell(raw, 4)).strip(),
        "salesPerson": str(_cell(raw, 5)).strip(),
        "dateAssigned": str(_cell(raw, 6)).strip(),
        "source": source,
    }


def fetch_voucher_rows(sheet_id: str, source: str = "regular") -> list[dict]:
    rows = fetch_values(sheet_id, VOUCHER_RANGE)
    return [to_voucher_row(r, source) for r in rows[1:]]


def fetch_records(sheet_id: str, label: str) -> list[dict]:
    """Read a sheet as header-keyed records, dropping fully empty rows."""
    rows = fetch_values(sheet_id, RECORD_RANGE)
    if len(rows) < 2:
        return []
    headers = rows[0]
    records = []
    for row in rows[1:]:
        if not any(str(c).strip() for c in row if c is not None):
            continue
        rec = {"_sheetLabel": label}
        for i, h in enumerate(headers):
            rec[h] = str(_cell(row, i)).strip()
        records.append(rec)
    return records
