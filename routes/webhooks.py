"""Inbound webhooks from external platforms."""

import logging

from flask import Blueprint, current_app, jsonify, request

from extensions import db, limiter
from services.webhook_security import WebhookSignatureError, verify_whop_request
from services.whop_webhook import WebhookPayloadError, handle_whop_delivery

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")


@webhooks_bp.route("/whop", methods=["POST"])
@limiter.limit("120 per minute")
def whop_webhook():
    """Handle Whop payment events.  No user auth; the signature is the credential."""
    raw_body = request.get_data()
    try:
        delivery_id = verify_whop_request(current_app.config["WHOP_CONFIG"], request.headers, raw_body)
    except WebhookSignatureError as e:
        logger.warning("Rejected Whop webhook from %s: %s", request.remote_addr, e)
        return jsonify({"ok": False, "error": "Invalid webhook signature"}), 401

    try:
        result = handle_whop_delivery(raw_body, delivery_id)
    except WebhookPayloadError:
        logger.error("Whop webhook body could not be parsed: %s %s", request.method, request.url)
        return jsonify({"ok": False, "error": "Internal server error"}), 500
    except Exception:
        db.session.rollback()
        logger.exception("Whop webhook failed: %s %s", request.method, request.url)
        return jsonify({"ok": False, "error": "Internal server error"}), 500
    return jsonify(result)


@webhooks_bp.route("/whop", methods=["GET"])
def whop_webhook_get():
    return jsonify({"error": "Method not allowed"}), 405
