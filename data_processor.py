"""
data_processor.py — Fetches voucher rows from the six Google Sheets and
computes the leaderboard summary for the dashboard.
"""

import logging
import re
from collections import Counter
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from datetime import date, datetime

import pytz

import config
import sheet_client

logger = logging.getLogger(__name__)

PLANS = config.PLANS
SOURCES = ("regular", "cash")
KNOWN_STATUSES = ("assigned", "available", "compromised")
RECENT_LIMIT = 20

_DATE_SPLIT = re.compile(r"[/\-.]")
_FALLBACK_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%B %d %Y", "%b %d %Y", "%d %B %Y", "%d %b %Y")


# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────

def parse_date(s: str):
    """Parse the free-form ``dateAssigned`` cell.

    Three segments with a four-digit first segment are read as Y-M-D, any
    other three segments as M-D-Y. Anything else goes through ISO and a few
    spelled-out formats. Returns None when nothing fits.
    """
    if not s or not s.strip():
        return None
    s = s.strip()
    parts = _DATE_SPLIT.split(s)
    if len(parts) == 3:
        try:
            a, b, c = (int(p) for p in parts)
        except ValueError:
            return None
        try:
            if len(parts[0]) == 4:
                return date(a, b, c)
            return date(c, a, b)
        except ValueError:
            return None
    try:
        return datetime.fromisoformat(s).date()
    except ValueError:
        pass
    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return None


def normalize_name(name: str) -> str:
    return " ".join(w[:1].upper() + w[1:].lower() for w in name.split())


def get_plan_stats(rows) -> dict:
    c = Counter(r["status"].strip().lower() for r in rows)
    assigned, available, compromised = (c[s] for s in KNOWN_STATUSES)
    return {
        "total": len(rows),
        "assigned": assigned,
        "available": available,
        "compromised": compromised,
        "other": len(rows) - assigned - available - compromised,
    }


def _date_key(d):
    return d.toordinal() if d else 0


# ──────────────────────────────────────────────────────────────────────────────
# Aggregation
# ──────────────────────────────────────────────────────────────────────────────

def build_summary(rows_by_plan: dict, now=None) -> dict:
    """Aggregate per-plan voucher rows into the published summary.

    ``rows_by_plan`` maps each plan key to its regular rows followed by its
    cash rows. Plans are scanned in ``PLANS`` order, which fixes the
    first-encounter order used to break leaderboard ties.
    """
    sales = {}
    assignments = []

    for plan in PLANS:
        for row in rows_by_plan.get(plan, []):
            if not row["salesPerson"] or not row["clientName"]:
                continue
            name = normalize_name(row["salesPerson"])
            stats = sales.get(name)
            if stats is None:
                stats = sales[name] = {
                    "name": name,
                    "total": 0,
                    "byPlan": {p: 0 for p in PLANS},
                    "clients": [],
                }
            stats["total"] += 1
            stats["byPlan"][plan] += 1
            stats["clients"].append({
                "name": row["clientName"],
                "code": row["code"],
                "date": row["dateAssigned"],
                "plan": plan,
                "phone": row["clientPhone"],
                "email": row["clientEmail"],
                "source": row["source"],
            })
            assignments.append({
                "name": name,
                "client": row["clientName"],
                "plan": plan,
                "date": row["dateAssigned"],
                "source": row["source"],
                "_order": len(assignments),
            })

    # sorted() is stable, so equal totals keep first-encounter order
    leaderboard = sorted(sales.values(), key=lambda p: -p["total"])
    for i, p in enumerate(leaderboard, 1):
        p["rank"] = i

    by_plan = {plan: get_plan_stats(rows_by_plan.get(plan, [])) for plan in PLANS}
    totals = {
        "totalVouchers": sum(s["total"] for s in by_plan.values()),
        "assigned": sum(s["assigned"] for s in by_plan.values()),
        "available": sum(s["available"] for s in by_plan.values()),
        "compromised": sum(s["compromised"] for s in by_plan.values()),
        "other": sum(s["other"] for s in by_plan.values()),
        "totalSalespeople": len(leaderboard),
        "byPlan": by_plan,
    }

    assignments.sort(key=lambda a: (_date_key(parse_date(a["date"])), a["_order"]), reverse=True)
    recent = [{k: v for k, v in a.items() if k != "_order"} for a in assignments[:RECENT_LIMIT]]

    now = now or datetime.now(pytz.utc)
    return {
        "leaderboard": leaderboard,
        "totals": totals,
        "recentAssignments": recent,
        "lastUpdated": now.isoformat(),
    }


def filter_leaderboard(leaderboard, plan):
    """Re-rank the leaderboard on a single plan's count, dropping zeroes."""
    ranked = sorted(
        ({**p, "total": p["byPlan"][plan]} for p in leaderboard if p["byPlan"][plan] > 0),
        key=lambda p: -p["total"],
    )
    for i, p in enumerate(ranked, 1):
        p["rank"] = i
    return ranked


def filter_assignments(assignments, since: date):
    """Keep assignments dated on/after *since*. Unparseable dates are dropped."""
    kept = []
    for a in assignments:
        d = parse_date(a["date"])
        if d and d >= since:
            kept.append(a)
    return kept


# ──────────────────────────────────────────────────────────────────────────────
# Fetch
# ──────────────────────────────────────────────────────────────────────────────

def fetch_all_rows(fetch=None) -> dict:
    """Fetch regular and cash rows for every plan concurrently.

    The first failing fetch aborts the pass and its exception propagates.
    """
    fetch = fetch or sheet_client.fetch_voucher_rows
    sheet_ids = {"regular": config.sheet_ids(), "cash": config.cash_sheet_ids()}

    pool = ThreadPoolExecutor(max_workers=len(PLANS) * len(SOURCES), thread_name_prefix="sheets")
    try:
        jobs = {}
        for plan in PLANS:
            for source in SOURCES:
                jobs[(plan, source)] = pool.submit(fetch, sheet_ids[source][plan], source)
        done, _ = wait(jobs.values(), return_when=FIRST_EXCEPTION)
        for fut in done:
            exc = fut.exception()
            if exc is not None:
                raise exc
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

    return {plan: jobs[(plan, "regular")].result() + jobs[(plan, "cash")].result() for plan in PLANS}


def generate_summary(fetch=None) -> dict:
    """Fetch all six sheets and return the complete leaderboard summary."""
    rows_by_plan = fetch_all_rows(fetch)
    summary = build_summary(rows_by_plan)
    logger.info("Summary built — %d salespeople, %d vouchers",
                summary["totals"]["totalSalespeople"], summary["totals"]["totalVouchers"])
    return summary
