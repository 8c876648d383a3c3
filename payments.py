"""
One-off payments: payment pages from the record store, payer validation and
the hosted payment iframe (handshake token, iframe URL, iframe HTML).
"""

import re
from urllib.parse import urlencode

import settings
import webhooks

RECURRING_PAYMENT_TYPES = ("הוראת קבע", "recurring")
UNNAMED_PRODUCT = "ללא שם"

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[0-9]{9,}$")
THTK_RE = re.compile(r"thtk=([^\s]+)")


def search_payment_pages(store, query=""):
    """Autocomplete entries for payment pages whose product name contains ``query``."""
    pages = store.list_payment_pages()
    needle = (query or "").strip().lower()
    if needle:
        pages = [page for page in pages if needle in page["product_name"].lower()]
    return [
        {
            "id": page["id"],
            "name": page["product_name"] or UNNAMED_PRODUCT,
            "amount": page["amount"],
            "paymentType": page["payment_type"],
        }
        for page in pages
    ]


def get_payment_page(store, record_id):
    if not record_id:
        raise ValueError("recordId parameter is required")
    return store.get_payment_page(record_id)


def validate_payer(parent_name, phone, email):
    """Return the phone number with spaces and dashes removed, or raise ValueError."""
    if not (parent_name or "").strip() or not (phone or "").strip() or not (email or "").strip():
        raise ValueError("אנא מלא את כל השדות הנדרשים")
    if not EMAIL_RE.match(email.strip()):
        raise ValueError("כתובת אימייל לא תקינה")
    clean_phone = re.sub(r"[\s-]", "", phone)
    if not PHONE_RE.match(clean_phone):
        raise ValueError("מספר טלפון לא תקין")
    return clean_phone


def resolve_num_payments(page, requested=None):
    """The payer's chosen number of payments, kept within ``[1, max_payments]``."""
    if requested is None or str(requested).strip() == "":
        count = int(page.get("num_payments") or 1)
    else:
        try:
            count = int(str(requested).strip())
        except ValueError:
            raise ValueError("כמות תשלומים לא תקינה") from None

    count = max(count, 1)
    if page.get("max_payments"):
        count = min(count, int(page["max_payments"]))
    return count


def build_iframe_url(page, parent_name, phone, email, num_payments=None, supplier=None):
    supplier = supplier or settings.TRANZILA_SUPPLIER
    num_payments = resolve_num_payments(page, num_payments)

    params = [
        ("lang", page.get("language") or "il"),
        ("sum", str(page.get("amount", 0))),
    ]
    if page.get("payment_type") in RECURRING_PAYMENT_TYPES:
        params.append(("recur_payments", str(num_payments)))
        params.append(("rrecur_transaction", "4_approved"))
        params.append(("cred_type", "1"))
    else:
        params.append(("cred_type", "1"))
        if page.get("max_payments") and num_payments > 1:
            params.append(("recur_payments", str(num_payments)))

    params.extend([
        ("parent_name", parent_name),
        ("phone", phone),
        ("email", email),
        ("record_id", page["id"]),
        ("product_name", page.get("product_name", "")),
    ])
    return f"{settings.TRANZILA_IFRAME_URL.format(supplier=supplier)}?{urlencode(params)}"


def create_handshake(amount, client=None):
    """Ask the gateway for a handshake token (``thtk``) bound to ``amount``."""
    if amount is None or amount == "":
        raise ValueError("sum parameter is required")

    params = {
        "supplier": settings.TRANZILA_SUPPLIER,
        "sum": amount,
        "TranzilaPW": settings.TRANZILA_PASSWORD,
    }
    response = webhooks.send("GET", settings.TRANZILA_HANDSHAKE_URL, client=client, params=params)

    match = THTK_RE.search(response.text)
    if not match:
        raise webhooks.UpstreamError("Failed to extract thtk token from Tranzila response")
    return match.group(1)


def load_iframe_html(post_data, client=None):
    if not post_data:
        raise ValueError("POST data is required")

    url = settings.TRANZILA_IFRAME_POST_URL.format(supplier=settings.TRANZILA_SUPPLIER)
    response = webhooks.send(
        "POST", url, client=client, json=post_data,
        headers={"Accept": "text/html, application/xhtml+xml"},
    )
    return response.text
