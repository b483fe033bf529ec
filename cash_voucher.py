"""
cash_voucher.py — Hands out the next available cash voucher for a plan.
"""

import logging
from datetime import datetime

import pytz

import config
import sheet_client
import summary_cache
from errors import InvalidPlanError, NoAvailableVoucherError

logger = logging.getLogger(__name__)


def today_str(now=None) -> str:
    """Today's date as M/D/YYYY (no zero padding) in the app timezone."""
    now = now or datetime.now(pytz.timezone(config.APP_TIMEZONE))
    return f"{now.month}/{now.day}/{now.year}"


def find_first_available(rows):
    """Index of the first data row whose status is ``available``, or None.

    ``rows`` includes the header at index 0.
    """
    for i in range(1, len(rows)):
        row = rows[i]
        status = str(row[1]).strip().lower() if len(row) > 1 and row[1] is not None else ""
        if status == "available":
            return i
    return None


def claim_first_available(sheet_id, fields):
    """Write *fields* (columns B..G) into the first available row.

    Returns the claimed row's voucher code, or None when nothing is available.
    Read then write with no lock: two concurrent claims can pick the same row.
    """
    rows = sheet_client.fetch_values(sheet_id, sheet_client.VOUCHER_RANGE, write=True)
    idx = find_first_available(rows)
    if idx is None:
        return None
    code = str(rows[idx][0]) if rows[idx] and rows[idx][0] is not None else ""
    row_number = idx + 1
    sheet_client.update_row(sheet_id, f"B{row_number}:G{row_number}", fields)
    return code


def assign_cash_voucher(plan, client_name, client_phone, client_email, sales_person) -> dict:
    """Assign the first available cash voucher of *plan*; returns ``{"voucherCode": ...}``."""
    if plan not in config.PLANS:
        raise InvalidPlanError(plan)
    sheet_id = config.cash_sheet_ids().get(plan)
    if not sheet_id:
        raise InvalidPlanError(plan)

    fields = ["assigned", client_name, client_phone, client_email, sales_person, today_str()]
    code = claim_first_available(sheet_id, fields)
    if code is None:
        logger.warning("No available cash vouchers for %s", plan)
        raise NoAvailableVoucherError(plan)

    logger.info("Assigned cash voucher %s (%s) to %s by %s", code, plan, client_name, sales_person)
    summary_cache.invalidate()
    return {"voucherCode": code}
