import json

import httpx
import pytest

from record_store import RecordStoreError


def make_record(record_id, **fields):
    record = {
        "id": record_id,
        "child_name": "",
        "cycle": "",
        "cohort_id": "",
        "parent_phone": "",
        "parent_name": "",
        "course": "",
        "school": "",
        "class": "",
        "needs_pickup": False,
        "trial_date": "",
        "in_whatsapp_group": False,
        "registration_status": "",
        "discount_type": "",
    }
    record.update(fields)
    return record


@pytest.fixture
def registrations():
    return [
        make_record("rec1", child_name="גיל אלבז", cycle="רוניקה א-ב - ראשון - 16:15", cohort_id="cyc1",
                    parent_phone="0505518585", parent_name="אריאל אלבז", course="אלקטרוניקה",
                    school="גורדון", **{"class": "א"}, needs_pickup=True, trial_date="2025-09-14",
                    in_whatsapp_group=True, registration_status="אושר"),
        make_record("rec2", child_name="ליאם יורמן", cycle="רוניקה א-ב - ראשון - 16:15", cohort_id="cyc1",
                    parent_phone="0527771111", parent_name="דניאלה יורמן", course="אלקטרוניקה",
                    school="גורדון", **{"class": "ב"}, needs_pickup=False, trial_date="2025-09-14",
                    in_whatsapp_group=True, registration_status="ממתין"),
        make_record("rec3", child_name="נועה כהן", cycle="רובוטיקה ג-ד", cohort_id="cyc2",
                    parent_phone="0543332222", parent_name="שרה כהן", course="רובוטיקה",
                    school="בית ספר הגפן", **{"class": "ג"}, needs_pickup=True, trial_date="2025-09-16",
                    in_whatsapp_group=False, registration_status="אושר"),
        make_record("rec4", child_name="דוד לוי", cycle="רובוטיקה ג-ד", cohort_id="cyc2",
                    parent_phone="0543332222", parent_name="מיכאל לוי", course="רובוטיקה",
                    school="בית ספר הגפן", **{"class": "ד"}, needs_pickup=False, trial_date="",
                    in_whatsapp_group=False, registration_status="נדחה"),
    ]


class FakeStore:
    """In-memory stand-in for the spreadsheet-backed record store."""

    def __init__(self, records=(), filter_options=None, payment_pages=(), staff=None, fail=False):
        self.records = list(records)
        self.filter_options = filter_options or {}
        self.payment_pages = list(payment_pages)
        self.staff = staff if staff is not None else [
            {"Username": "admin", "Password": "admin123", "FullName": "רכזת החוגים"},
        ]
        self.fail = fail
        self.loads = 0

    def load_registrations(self):
        self.loads += 1
        if self.fail:
            raise RecordStoreError("Unable to read worksheet 'הרשמה לניסיון': quota exceeded")
        return list(self.records), dict(self.filter_options)

    def list_payment_pages(self):
        return list(self.payment_pages)

    def get_payment_page(self, record_id):
        for page in self.payment_pages:
            if page["id"] == record_id:
                return page
        return None

    def get_staff(self):
        return self.staff


@pytest.fixture
def payment_pages():
    return [
        {"id": "recPay1", "product_name": "דמי רישום לחוג אלקטרוניקה", "description": "",
         "payment_type": "אשראי", "num_payments": 1, "max_payments": 3, "amount": 350,
         "language": "il", "notify_url": ""},
        {"id": "recPay2", "product_name": "מנוי חודשי רובוטיקה", "description": "",
         "payment_type": "הוראת קבע", "num_payments": 10, "max_payments": None, "amount": 220,
         "language": "il", "notify_url": ""},
    ]


@pytest.fixture
def fake_store(registrations, payment_pages):
    return FakeStore(registrations, {"schools": ["גורדון", "בית ספר הגפן"]}, payment_pages)


class RecordingTransport:
    """Collects outgoing requests and answers each with ``handler``."""

    def __init__(self, handler=None):
        self.requests = []
        self.handler = handler or (lambda request: httpx.Response(200, json={"ok": True}))

    def __call__(self, request):
        self.requests.append(request)
        return self.handler(request)

    def client(self):
        return httpx.Client(transport=httpx.MockTransport(self))

    def last_json(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def webhook_urls(monkeypatch):
    import settings

    monkeypatch.setattr(settings, "ATTENDANCE_READ_WEBHOOK", "https://hooks.test/attendance-read")
    monkeypatch.setattr(settings, "ATTENDANCE_WRITE_WEBHOOK", "https://hooks.test/attendance-write")
    monkeypatch.setattr(settings, "BULK_MESSAGES_WEBHOOK", "https://hooks.test/bulk")
    monkeypatch.setattr(settings, "TRANZILA_SUPPLIER", "testsupplier")
    monkeypatch.setattr(settings, "TRANZILA_PASSWORD", "secret")
