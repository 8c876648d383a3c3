"""Bulk WhatsApp notifications sent through the messaging webhook."""

from datetime import datetime

import pytz

import settings
import webhooks

FORMAL_MODE = "formal"

# Optional campaign fields copied through to the webhook unchanged.
PASSTHROUGH_FIELDS = (
    "messagingMode",
    "registrationLink",
    "messageContent",
    "courseName",
    "paymentReason",
    "arrivalDay",
    "arrivalTime",
    "isSendingLink",
    "debug",
)


def unique_phone_count(registrations):
    return len({str(r.get("parent_phone") or r.get("parentPhone") or "").strip()
                for r in registrations} - {""})


def build_payload(registrations, options=None):
    if not isinstance(registrations, list):
        raise ValueError("Registrations data is required")

    options = options or {}
    payload = {
        "registrations": registrations,
        "totalUsers": options.get("totalUsers", len(registrations)),
        "uniqueNumbers": options.get("uniqueNumbers", unique_phone_count(registrations)),
    }
    for key in PASSTHROUGH_FIELDS:
        if key in options:
            payload[key] = options[key]

    # Template flows only apply to formal (approved-template) sends.
    if options.get("messagingMode") == FORMAL_MODE and options.get("flowId"):
        payload["flowId"] = options["flowId"]
    if options.get("paymentPageId"):
        payload["paymentPageId"] = options["paymentPageId"]

    payload["timestamp"] = datetime.now(pytz.utc).isoformat()
    return payload


def send_bulk_messages(registrations, options=None, client=None):
    payload = build_payload(registrations, options)
    response = webhooks.post_json(settings.BULK_MESSAGES_WEBHOOK, payload, client=client)
    return {
        "success": True,
        "message": f"Messages sent successfully to {payload['uniqueNumbers']} unique numbers",
        "result": webhooks.read_body(response),
    }
