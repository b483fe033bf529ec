"""
Tests for data_processor: date parsing, name normalisation, plan stats and the
leaderboard aggregation pass.
"""

from datetime import date, datetime

import pytest
import pytz

import data_processor as dp
from conftest import make_row
from errors import UpstreamFetchError


# ── parse_date ───────────────────────────────────────────────────────────────

@pytest.mark.parametrize("raw,expected", [
    ("1/5/2024", date(2024, 1, 5)),
    ("12/31/2023", date(2023, 12, 31)),
    ("2024-03-07", date(2024, 3, 7)),
    ("2024.3.7", date(2024, 3, 7)),
    ("3-7-2024", date(2024, 3, 7)),
    (" 1/5/2024 ", date(2024, 1, 5)),
    ("March 7, 2024", date(2024, 3, 7)),
    ("1/5/24", date(24, 1, 5)),
])
def test_parse_date_accepts_known_formats(raw, expected):
    assert dp.parse_date(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "soon", "13/45/2024", "a/b/c", "2024/02/30"])
def test_parse_date_returns_none_when_unparseable(raw):
    assert dp.parse_date(raw) is None


def test_parse_date_assumes_month_first():
    # 5/1 is May 1st, never January 5th
    assert dp.parse_date("5/1/2024") == date(2024, 5, 1)


# ── normalize_name ───────────────────────────────────────────────────────────

def test_normalize_name_title_cases_tokens():
    assert dp.normalize_name("john DOE") == "John Doe"


def test_normalize_name_collapses_whitespace_and_is_idempotent():
    once = dp.normalize_name("  jane   SMITH ")
    assert once == "Jane Smith"
    assert dp.normalize_name(once) == once


# ── plan stats ───────────────────────────────────────────────────────────────

def test_plan_stats_buckets_unknown_statuses_into_other():
    rows = [make_row(status=s) for s in
            ("assigned", "Assigned ", "available", "compromised", "used", "", "AVAILABLE")]
    stats = dp.get_plan_stats(rows)
    assert stats == {"total": 7, "assigned": 2, "available": 2, "compromised": 1, "other": 2}
    assert stats["total"] == stats["assigned"] + stats["available"] + stats["compromised"] + stats["other"]


# ── build_summary ────────────────────────────────────────────────────────────

def test_end_to_end_two_rows_merge_into_one_salesperson():
    rows = {
        "3month": [
            make_row("bob lee", "Acme", date="1/5/2024"),
            make_row("Bob Lee", "Beta", date="1/6/2024"),
        ],
    }
    summary = dp.build_summary(rows)

    assert len(summary["leaderboard"]) == 1
    bob = summary["leaderboard"][0]
    assert bob["name"] == "Bob Lee"
    assert bob["total"] == 2
    assert bob["byPlan"] == {"12month": 0, "3month": 2, "6month": 0}
    assert bob["rank"] == 1
    assert summary["recentAssignments"][0]["client"] == "Beta"


def test_rows_without_client_or_salesperson_are_not_counted():
    rows = {
        "12month": [
            make_row("Ann", "Client A"),
            make_row("Ann", "", status="reserved"),
            make_row("", "Orphan"),
            make_row("", "", status="available"),
        ],
    }
    summary = dp.build_summary(rows)
    assert [p["name"] for p in summary["leaderboard"]] == ["Ann"]
    assert summary["leaderboard"][0]["total"] == 1
    assert len(summary["recentAssignments"]) == 1
    assert summary["totals"]["totalVouchers"] == 4


def test_totals_match_client_counts():
    rows = {
        "12month": [make_row("Ann", f"c{i}") for i in range(3)] + [make_row("Ben", "x", source="cash")],
        "3month": [make_row("ben", "y"), make_row("Cy", "z"), make_row("Cy", "")],
        "6month": [make_row("ANN", "w", source="cash")],
    }
    summary = dp.build_summary(rows)
    counted = 7
    assert sum(p["total"] for p in summary["leaderboard"]) == counted
    assert sum(len(p["clients"]) for p in summary["leaderboard"]) == counted
    for p in summary["leaderboard"]:
        assert p["total"] == sum(p["byPlan"].values()) == len(p["clients"])


def test_leaderboard_sorted_with_stable_ties_and_gapless_ranks():
    rows = {
        "12month": [make_row("Zed", "a"), make_row("Amy", "b")],
        "3month": [make_row("Max", "c"), make_row("Max", "d"), make_row("Amy", "e")],
        "6month": [make_row("Zed", "f")],
    }
    board = dp.build_summary(rows)["leaderboard"]
    totals = [p["total"] for p in board]
    assert totals == sorted(totals, reverse=True)
    # Zed, Amy and Max all have 2; first-encounter order is Zed, Amy, Max
    assert [p["name"] for p in board] == ["Zed", "Amy", "Max"]
    assert [p["rank"] for p in board] == [1, 2, 3]


def test_client_detail_carries_source_and_plan():
    rows = {"6month": [make_row("Ann", "Acme", code="V-1", source="cash", phone="555", email="a@x.io",
                                date="2/2/2024")]}
    client = dp.build_summary(rows)["leaderboard"][0]["clients"][0]
    assert client == {"name": "Acme", "code": "V-1", "date": "2/2/2024", "plan": "6month",
                      "phone": "555", "email": "a@x.io", "source": "cash"}


def test_recent_assignments_order_and_tie_break():
    rows = {
        "12month": [
            make_row("Ann", "Old", date="1/1/2023"),
            make_row("Ann", "SameDayFirst", date="3/1/2024"),
            make_row("Ann", "Undated", date="whenever"),
        ],
        "3month": [
            make_row("Ben", "SameDaySecond", date="2024-03-01"),
            make_row("Ben", "Newest", date="4/1/2024"),
        ],
    }
    recent = dp.build_summary(rows)["recentAssignments"]
    assert [a["client"] for a in recent] == ["Newest", "SameDaySecond", "SameDayFirst", "Old", "Undated"]
    assert "_order" not in recent[0]


def test_recent_assignments_capped_at_twenty():
    rows = {"12month": [make_row("Ann", f"c{i}", date=f"1/{i + 1}/2024") for i in range(25)]}
    recent = dp.build_summary(rows)["recentAssignments"]
    assert len(recent) == 20
    assert recent[0]["client"] == "c24"


def test_totals_aggregate_plan_stats():
    rows = {
        "12month": [make_row(status="available"), make_row("A", "b")],
        "3month": [make_row(status="compromised")],
    }
    totals = dp.build_summary(rows)["totals"]
    assert totals["totalVouchers"] == 3
    assert totals["assigned"] == 1
    assert totals["available"] == 1
    assert totals["compromised"] == 1
    assert totals["byPlan"]["6month"]["total"] == 0
    assert totals["totalSalespeople"] == 1


def test_last_updated_uses_given_clock():
    now = datetime(2024, 5, 1, 12, 0, tzinfo=pytz.utc)
    assert dp.build_summary({}, now=now)["lastUpdated"] == "2024-05-01T12:00:00+00:00"


# ── filters ──────────────────────────────────────────────────────────────────

def test_filter_leaderboard_reranks_on_plan():
    rows = {
        "12month": [make_row("Ann", "a"), make_row("Ann", "b"), make_row("Ann", "c")],
        "3month": [make_row("Ben", "d"), make_row("Ben", "e"), make_row("Ann", "f")],
    }
    board = dp.build_summary(rows)["leaderboard"]
    three = dp.filter_leaderboard(board, "3month")
    assert [(p["name"], p["total"], p["rank"]) for p in three] == [("Ben", 2, 1), ("Ann", 1, 2)]
    assert dp.filter_leaderboard(board, "6month") == []
    assert board[0]["total"] == 4


def test_filter_assignments_drops_old_and_undated():
    assignments = [{"date": "3/1/2024"}, {"date": "1/1/2024"}, {"date": "n/a"}, {"date": "2024-02-15"}]
    kept = dp.filter_assignments(assignments, date(2024, 2, 1))
    assert [a["date"] for a in kept] == ["3/1/2024", "2024-02-15"]


# ── fetch ────────────────────────────────────────────────────────────────────

def test_fetch_all_rows_concatenates_regular_then_cash():
    def fake_fetch(sheet_id, source):
        return [make_row("Ann", sheet_id, source=source)]

    rows = dp.fetch_all_rows(fake_fetch)
    assert [r["clientName"] for r in rows["12month"]] == ["reg-12", "cash-12"]
    assert [r["source"] for r in rows["6month"]] == ["regular", "cash"]


def test_fetch_all_rows_fails_whole_pass_on_one_error():
    def fake_fetch(sheet_id, source):
        if sheet_id == "cash-3":
            raise UpstreamFetchError("boom")
        return []

    with pytest.raises(UpstreamFetchError):
        dp.fetch_all_rows(fake_fetch)


def test_generate_summary_uses_fetched_rows():
    def fake_fetch(sheet_id, source):
        return [make_row("ann", "Acme")] if sheet_id == "reg-6" else []

    summary = dp.generate_summary(fake_fetch)
    assert summary["leaderboard"][0]["byPlan"]["6month"] == 1
