"""
app.py — Voucher leaderboard API

Run: python app.py
Prod: gunicorn "app:create_app()"
"""

import json
import logging
from datetime import datetime, timedelta

import pytz
import requests
from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask, jsonify, redirect, request, url_for
from markupsafe import escape

import config
import summary_cache
from ai_agent import process_agent_query, process_chat_query
from cash_voucher import assign_cash_voucher
from data_processor import filter_assignments, filter_leaderboard
from errors import (AllProvidersFailedError, InvalidPlanError, NoAvailableVoucherError,
                    OAuthExchangeError, UpstreamFetchError)
from openrouter_auth import (KEY_COOKIE, KEY_MAX_AGE, VERIFIER_COOKIE, VERIFIER_MAX_AGE,
                             bind_request_key, credential_store, exchange_code_for_key,
                             generate_code_challenge, generate_code_verifier, get_auth_url)

logging.basicConfig(level=logging.INFO,
                    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger("leaderboard")

app = Flask(__name__)

WEBHOOK_APOLOGY = "Sorry, I'm having trouble connecting right now. Please try again."
CASH_FIELDS = ("clientName", "clientPhone", "clientEmail", "salesPerson", "plan")


# ── Request hooks ────────────────────────────────────────────────────────────
@app.before_request
def _bind_credentials():
    bind_request_key(request.cookies.get(KEY_COOKIE))


def _cookie_opts(max_age):
    return {"max_age": max_age, "httponly": True, "secure": config.is_production(),
            "samesite": "Lax", "path": "/"}


def _html(title, body, status):
    page = f"""<!DOCTYPE html>
<html><head><title>{escape(title)}</title>
<meta name="viewport" content="width=device-width,initial-scale=1">
<style>
  body {{ font-family: system-ui, sans-serif; max-width: 480px; margin: 80px auto; padding: 24px; }}
  h2 {{ margin-top: 0; }}
</style>
</head><body>{body}</body></html>"""
    return app.response_class(page, status=status, mimetype="text/html")


# ── Leaderboard ──────────────────────────────────────────────────────────────
@app.route("/api/sheets")
def api_sheets():
    try:
        data = summary_cache.get_summary()
    except UpstreamFetchError as e:
        logger.exception("Sheets fetch failed")
        return jsonify({"error": str(e) or "Failed to fetch sheet data"}), 502
    resp = jsonify(data)
    resp.headers["Cache-Control"] = "no-store, max-age=0"
    return resp


@app.route("/api/leaderboard")
def api_leaderboard():
    """Leaderboard re-ranked on one plan and/or activity from the last N days."""
    plan = request.args.get("plan")
    days = request.args.get("days", type=int)
    if plan and plan not in config.PLANS:
        return jsonify({"error": "Invalid plan"}), 400
    if days is not None and days < 0:
        return jsonify({"error": "days must be non-negative"}), 400
    try:
        data = summary_cache.get_summary()
    except UpstreamFetchError as e:
        logger.exception("Sheets fetch failed")
        return jsonify({"error": str(e)}), 502

    leaderboard = filter_leaderboard(data["leaderboard"], plan) if plan else data["leaderboard"]
    recent = data["recentAssignments"]
    if days is not None:
        today = datetime.now(pytz.timezone(config.APP_TIMEZONE)).date()
        recent = filter_assignments(recent, today - timedelta(days=days))
    resp = jsonify({"plan": plan or "all", "leaderboard": leaderboard,
                    "recentAssignments": recent, "lastUpdated": data["lastUpdated"]})
    resp.headers["Cache-Control"] = "no-store, max-age=0"
    return resp


@app.route("/api/refresh", methods=["POST"])
def api_refresh():
    summary_cache.invalidate()
    try:
        data = summary_cache.get_summary()
    except UpstreamFetchError as e:
        logger.exception("Refresh failed")
        return jsonify({"ok": False, "error": str(e)}), 502
    return jsonify({"ok": True, "refreshed": data["lastUpdated"]})


@app.route("/api/status")
def api_status():
    ts = summary_cache.last_refresh()
    return jsonify({
        "status": "ok",
        "last_refresh": datetime.fromtimestamp(ts, pytz.utc).isoformat() if ts else None,
        "ttl_seconds": config.SUMMARY_TTL_SECONDS,
        "openrouter_connected": bool(credential_store.get()),
    })


# ── Cash vouchers ────────────────────────────────────────────────────────────
@app.route("/api/cash-process", methods=["POST"])
def api_cash_process():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"success": False, "error": "No data provided"}), 400
    values = {f: str(data.get(f) or "").strip() for f in CASH_FIELDS}
    missing = [f for f in CASH_FIELDS if not values[f]]
    if missing:
        return jsonify({"success": False, "error": f"Missing fields: {', '.join(missing)}"}), 400

    try:
        result = assign_cash_voucher(values["plan"], values["clientName"], values["clientPhone"],
                                     values["clientEmail"], values["salesPerson"])
    except InvalidPlanError:
        return jsonify({"success": False, "error": "Invalid plan"}), 400
    except NoAvailableVoucherError as e:
        return jsonify({"success": False, "error": str(e)}), 409
    except UpstreamFetchError:
        logger.exception("Cash process error")
        return jsonify({"success": False, "error": "Could not reach the voucher sheet"}), 502
    return jsonify({"success": True, **result})


# ── Chat ─────────────────────────────────────────────────────────────────────
def _relay_to_webhook(message):
    try:
        resp = requests.post(config.N8N_WEBHOOK_URL, json={"message": message},
                             timeout=config.AI_TIMEOUT_SECONDS)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError):
        logger.exception("Chat webhook error")
        return WEBHOOK_APOLOGY
    if not isinstance(data, dict):
        return json.dumps(data)
    for key in ("output", "response", "text", "message"):
        if data.get(key):
            return data[key]
    return json.dumps(data)


def _message_from_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None
    message = data.get("message")
    return message.strip() if isinstance(message, str) and message.strip() else None


@app.route("/api/chat", methods=["POST"])
def api_chat():
    message = _message_from_body()
    if not message:
        return jsonify({"error": "Message is required"}), 400
    if config.N8N_WEBHOOK_URL:
        return jsonify({"reply": _relay_to_webhook(message)})
    reply = process_chat_query(message, api_key=request.cookies.get(KEY_COOKIE))
    return jsonify({"reply": reply})


@app.route("/api/agent", methods=["POST"])
def api_agent():
    message = _message_from_body()
    if not message:
        return jsonify({"error": "Message is required"}), 400
    try:
        reply = process_agent_query(message, api_key=request.cookies.get(KEY_COOKIE))
    except (AllProvidersFailedError, UpstreamFetchError) as e:
        logger.error("Agent query failed: %s", e)
        return jsonify({"error": str(e)}), 502
    return jsonify({"reply": reply})


# ── OpenRouter OAuth ─────────────────────────────────────────────────────────
@app.route("/api/auth/openrouter")
def openrouter_start():
    verifier = generate_code_verifier()
    callback_url = url_for("openrouter_callback", _external=True)
    resp = redirect(get_auth_url(callback_url, generate_code_challenge(verifier)))
    resp.set_cookie(VERIFIER_COOKIE, verifier, **_cookie_opts(VERIFIER_MAX_AGE))
    return resp


@app.route("/api/auth/openrouter/callback")
def openrouter_callback():
    code = request.args.get("code")
    if not code:
        return _html("OpenRouter OAuth Failed",
                     '<p style="color:#ef4444">No authorization code received from OpenRouter.</p>', 400)
    verifier = request.cookies.get(VERIFIER_COOKIE)
    if not verifier:
        return _html("OAuth Session Expired",
                     '<p style="color:#ef4444">Session expired. Please try connecting again.</p>', 400)

    try:
        result = exchange_code_for_key(code, verifier)
    except OAuthExchangeError as e:
        logger.error("OpenRouter OAuth exchange error: %s", e)
        return _html("OAuth Exchange Failed", f"""
        <p style="color:#ef4444">Failed to exchange code for API key.</p>
        <p style="color:#6b7280;font-size:14px">{escape(str(e))}</p>""", 500)

    credential_store.set(result["key"])
    resp = _html("OpenRouter Connected!", """
        <div style="text-align:center">
          <div style="font-size:48px;margin-bottom:16px">✅</div>
          <h2 style="color:#10b981;margin-bottom:8px">OpenRouter Connected Successfully</h2>
          <p style="color:#6b7280;margin-bottom:24px">OAuth2 authentication complete. OpenRouter is now available as a fallback AI provider.</p>
          <a href="/" style="display:inline-block;padding:12px 24px;background:#002E59;color:white;border-radius:8px;text-decoration:none;font-weight:600">Back to Dashboard</a>
        </div>""", 200)
    resp.delete_cookie(VERIFIER_COOKIE, path="/")
    resp.set_cookie(KEY_COOKIE, result["key"], **_cookie_opts(KEY_MAX_AGE))
    return resp


# ── Startup ──────────────────────────────────────────────────────────────────
def _warm_cache():
    try:
        summary_cache.get_summary()
    except UpstreamFetchError:
        logger.exception("Cache warm-up failed")


scheduler = BackgroundScheduler(daemon=True)


def create_app():
    """Factory for gunicorn / production."""
    if config.WARM_INTERVAL_SECONDS > 0 and not scheduler.running:
        scheduler.add_job(_warm_cache, "interval", seconds=config.WARM_INTERVAL_SECONDS,
                          id="warm", replace_existing=True, next_run_time=datetime.now())
        scheduler.start()
        logger.info("Warming summary cache every %ds", config.WARM_INTERVAL_SECONDS)
    return app


if __name__ == "__main__":
    create_app()
    logger.info("Leaderboard API running on http://localhost:%d", config.PORT)
    app.run(host="0.0.0.0", port=config.PORT, debug=False)
