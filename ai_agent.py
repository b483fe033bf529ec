"""
ai_agent.py — Voucher lookups for the chat widget.

Searches the regular voucher sheets for rows matching the user's message and
hands the matches to the AI gateway to phrase the reply.
"""

import logging

import config
import sheet_client
from ai_gateway import call_ai
from errors import LeaderboardError

logger = logging.getLogger(__name__)

CHAT_APOLOGY = "Sorry, I'm having trouble right now. Please try again in a moment."
NO_MATCH_MARKER = "No assigned voucher found"

STOP_WORDS = {
    "find", "get", "me", "the", "code", "for", "voucher", "of", "a", "an", "is",
    "show", "search", "look", "up", "lookup", "what", "who", "check", "please",
    "can", "you", "i", "want", "need", "hi", "hello", "hey",
}

SYSTEM_PROMPT = """You are a fast and precise voucher lookup assistant for SASA Worldwide sales agents.

## YOUR ROLE
Sales agents message you asking for voucher code details for specific people. Your job is to search ALL THREE voucher sheets and return the COMPLETE row details.

## CRITICAL RULES

### Rule 1: ONLY ASSIGNED VOUCHERS
- ONLY return voucher codes that are ASSIGNED, meaning the row has a Client Name filled in AND/OR the Status column says 'Used' or 'Assigned'.
- NEVER return rows where Status = 'Available' and Client Name is empty.

### Rule 2: RETURN ALL COLUMN DATA
For every matching row, return EVERY column that has data.

## RESPONSE FORMAT

When you find a match, respond EXACTLY like this:

✅ *VOUCHER FOUND*

📋 *Subscription Type:* [12 Month / 6 Month / 3 Month]
🔑 *Voucher Code:* [the actual code]
📊 *Status:* [Used / Assigned / etc.]
👤 *Client Name:* [full name from sheet]
👨‍💼 *Salesperson:* [name from sheet]
📝 *Other Details:* [any additional column data]

🔥 Amazing work! Keep crushing those sales! 💪🏆

## IF MULTIPLE MATCHES
Show each match as a separate block with all details. Number them (#1, #2, etc.).

## IF NO ASSIGNED MATCH FOUND
Respond exactly:
❌ No assigned voucher found for "[name]".
Please double-check the client's full name or spelling and try again.

## HANDLING NON-LOOKUP MESSAGES
If the message is NOT a voucher lookup (greetings like 'Hi', 'Hello', questions, etc.), respond:
👋 Hey! I'm your voucher lookup bot. Send me a client's name and I'll find their voucher details instantly!

## ABSOLUTE RESTRICTIONS
- NEVER reveal available/unassigned voucher codes.
- NEVER fabricate or guess data.
- NEVER share Google Sheet IDs or internal details.
- Keep responses concise but complete.
- Always respond in English."""

CHAT_PERSONA = """You are SASA AI Assistant, a helpful assistant for SASA Worldwide's sales team. You help with voucher lookups, sales questions, and general information about the leaderboard.

When asked about vouchers or client names, use the search results provided to give accurate answers.
When asked general questions, be helpful, friendly, and concise.
Always respond in English. Keep responses short and mobile-friendly."""


# ──────────────────────────────────────────────────────────────────────────────
# Search
# ──────────────────────────────────────────────────────────────────────────────

def query_words(query: str):
    return [w for w in query.lower().split() if len(w) > 1 and w not in STOP_WORDS]


def matches_query(record: dict, words) -> bool:
    status = record.get("Status", "").lower()
    client = record.get("Client Name", "").lower()
    if status == "available" and not client:
        return False
    code = record.get("Voucher Code", "").lower()
    sales_person = (record.get("Sales Person") or record.get("Salesperson") or "").lower()
    searchable = f"{client} {code} {sales_person}"
    return any(w in searchable for w in words)


def format_matches(label, matches) -> list[str]:
    out = [f"\n--- {label} Vouchers ---"]
    for i, rec in enumerate(matches, 1):
        entries = "\n".join(f"  {k}: {v}" for k, v in rec.items() if k != "_sheetLabel" and v)
        out.append(f"Match #{i}:\n{entries}")
    return out


def search_all_sheets(query: str, fetch=None) -> str:
    """Search the three regular sheets and render matches as prompt text."""
    fetch = fetch or sheet_client.fetch_records
    words = query_words(query)
    ids = config.sheet_ids()
    results = []

    for plan in config.PLANS:
        label = config.PLAN_LABELS[plan]
        try:
            records = fetch(ids[plan], label)
        except LeaderboardError as e:
            logger.error("Error searching %s sheet: %s", label, e)
            continue
        matches = [r for r in records if matches_query(r, words)]
        if matches:
            results.extend(format_matches(label, matches))

    if not results:
        return (f'{NO_MATCH_MARKER} matching "{query}" in any of the 3 sheets '
                "(12 Month, 6 Month, 3 Month).")
    return "\n".join(results)


# ──────────────────────────────────────────────────────────────────────────────
# Replies
# ──────────────────────────────────────────────────────────────────────────────

def process_agent_query(message: str, api_key=None) -> str:
    """Strict lookup-bot reply. Errors propagate to the caller."""
    search_results = search_all_sheets(message)
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": (
            f'The user asked: "{message}"\n\n'
            f"Here are the search results from ALL 3 voucher sheets:\n{search_results}\n\n"
            "Based on these results, provide the appropriate response following the format rules."
        )},
    ]
    return call_ai(messages, 2000, api_key=api_key)


def process_chat_query(message: str, api_key=None) -> str:
    """Chat widget reply. Never raises: failures become a fixed apology."""
    try:
        search_results = search_all_sheets(message)
        if NO_MATCH_MARKER in search_results:
            user_content = message
        else:
            user_content = f'User message: "{message}"\n\nRelevant data from voucher sheets:\n{search_results}'
        messages = [
            {"role": "system", "content": f"{CHAT_PERSONA}\n\n{SYSTEM_PROMPT}"},
            {"role": "user", "content": user_content},
        ]
        return call_ai(messages, 1000, api_key=api_key)
    except Exception:
        logger.exception("Chat processing error")
        return CHAT_APOLOGY
