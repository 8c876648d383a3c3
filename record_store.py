"""
Data access for registrations, lookup tables, payment pages and staff.

Production reads the program's Google Sheets workbook through gspread; with
``LOCAL_DEV=true`` the same functions are served from the SQLite store in
``db_helper``.
"""

import gspread
from google.oauth2.service_account import Credentials

import db_helper
import settings

SCOPES = [
    "https://spreadsheets.google.com/feeds",
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/drive",
]

RECORD_ID_COLUMN = "Record ID"

REGISTRATION_COLUMNS = {
    "child_full_name": "שם מלא ילד",
    "child_name": "שם הילד",
    "cycle": "מחזור",
    "parent_phone": "טלפון הורה",
    "parent_name": "שם מלא הורה",
    "course": "חוג",
    "school": "בית ספר",
    "class": "כיתה",
    "needs_pickup": "האם צריך איסוף מהצהרון",
    "trial_date": "תאריך הגעה לשיעור ניסיון",
    "in_whatsapp_group": "האם בקבוצת הוואטסאפ",
    "registration_status": "סטטוס רישום לחוג",
    "discount_type": "סוג הנחה",
}

SCHOOL_NAME_COLUMN = "בית ספר"
CYCLE_NAME_COLUMN = "שם מחזור לתצוגה"
COURSE_NAME_COLUMN = "שם החוג"

PAYMENT_PAGE_COLUMNS = {
    "product_name": "שם המוצר",
    "description": "תיאור המוצר",
    "payment_type": "סוג תשלום",
    "num_payments": "כמות תשלומים",
    "max_payments": "כמות תשלומים מקסימלית",
    "amount": "סכום לתשלום",
    "language": "שפה",
    "notify_url": "כתובת לעדכון",
}


class RecordStoreError(Exception):
    """The record store could not be read."""


# --- Google Sheets Connection (Production Only) ---

def get_sheets_client():
    """Establishes a connection with the Google Sheets API and returns a client object."""
    creds = Credentials.from_service_account_file(settings.CREDENTIALS_PATH, scopes=SCOPES)
    return gspread.authorize(creds)


def get_workbook(client=None):
    client = client or get_sheets_client()
    return client.open(settings.SPREADSHEET_NAME)


# --- Normalisation ---

def first_value(value):
    """Linked-record cells may hold a list; the first entry is the one shown."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else ""
    if value is None:
        return ""
    return value


def as_bool(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value or "").strip().lower() in ("true", "yes", "1", "v", "כן")


def cell_text(value):
    value = first_value(value)
    return "" if value is None else str(value).strip()


def build_lookup(rows, name_column):
    """Map each row's record id to its display name, skipping incomplete rows."""
    lookup = {}
    for row in rows:
        record_id = cell_text(row.get(RECORD_ID_COLUMN))
        name = cell_text(row.get(name_column))
        if record_id and name:
            lookup[record_id] = name
    return lookup


def normalize_registration(row, schools=None, cycles=None, courses=None):
    """Turn a raw registrations row into a fully populated record dict."""
    schools = schools or {}
    cycles = cycles or {}
    courses = courses or {}
    cols = REGISTRATION_COLUMNS

    cycle_id = cell_text(row.get(cols["cycle"]))
    course_id = cell_text(row.get(cols["course"]))
    school_id = cell_text(row.get(cols["school"]))

    return {
        "id": cell_text(row.get(RECORD_ID_COLUMN) or row.get("id")),
        "child_name": cell_text(row.get(cols["child_full_name"])) or cell_text(row.get(cols["child_name"])),
        "cycle": cycles.get(cycle_id, cycle_id),
        "cohort_id": cycle_id,
        "parent_phone": cell_text(row.get(cols["parent_phone"])),
        "parent_name": cell_text(row.get(cols["parent_name"])),
        "course": courses.get(course_id, course_id),
        "school": schools.get(school_id, school_id),
        "class": cell_text(row.get(cols["class"])),
        "needs_pickup": as_bool(row.get(cols["needs_pickup"])),
        "trial_date": cell_text(row.get(cols["trial_date"])),
        "in_whatsapp_group": as_bool(row.get(cols["in_whatsapp_group"])),
        "registration_status": cell_text(row.get(cols["registration_status"])),
        "discount_type": cell_text(row.get(cols["discount_type"])),
    }


def _distinct(values):
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def build_filter_options(registrations, schools, cycles, courses):
    return {
        "schools": _distinct(schools.values()),
        "cycles": _distinct(cycles.values()),
        "courses": _distinct(courses.values()),
        "classes": _distinct(r["class"] for r in registrations),
        "registration_statuses": _distinct(r["registration_status"] for r in registrations),
        "discount_types": _distinct(r["discount_type"] for r in registrations),
    }


def normalize_payment_page(row):
    cols = PAYMENT_PAGE_COLUMNS
    max_payments = row.get(cols["max_payments"])
    return {
        "id": cell_text(row.get(RECORD_ID_COLUMN) or row.get("id")),
        "product_name": cell_text(row.get(cols["product_name"])),
        "description": cell_text(row.get(cols["description"])),
        "payment_type": cell_text(row.get(cols["payment_type"])),
        "num_payments": _as_int(row.get(cols["num_payments"])) or 1,
        "max_payments": _as_int(max_payments) or None,
        "amount": _as_number(row.get(cols["amount"])),
        "language": cell_text(row.get(cols["language"])) or "il",
        "notify_url": cell_text(row.get(cols["notify_url"])),
    }


def _as_int(value):
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _as_number(value):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return int(number) if number.is_integer() else number


# --- Store implementations ---

class SheetsRecordStore:
    """Reads the program workbook worksheet by worksheet."""

    def __init__(self, client=None):
        self._client = client

    def _records(self, sheet_key):
        try:
            if self._client is None:
                self._client = get_sheets_client()
            workbook = get_workbook(self._client)
            return workbook.worksheet(settings.SHEETS[sheet_key]).get_all_records()
        except Exception as exc:
            raise RecordStoreError(f"Unable to read worksheet '{settings.SHEETS[sheet_key]}': {exc}") from exc

    def _optional_records(self, sheet_key):
        # A missing lookup table leaves ids unresolved rather than failing the load.
        try:
            return self._records(sheet_key)
        except RecordStoreError as exc:
            print(f"⚠️  {exc}")
            return []

    def load_registrations(self):
        rows = self._records("registrations")
        schools = build_lookup(self._optional_records("schools"), SCHOOL_NAME_COLUMN)
        cycles = build_lookup(self._optional_records("cycles"), CYCLE_NAME_COLUMN)
        courses = build_lookup(self._optional_records("courses"), COURSE_NAME_COLUMN)

        registrations = [normalize_registration(row, schools, cycles, courses) for row in rows]
        for idx, record in enumerate(registrations, start=2):
            if not record["id"]:
                record["id"] = f"row-{idx}"
        return registrations, build_filter_options(registrations, schools, cycles, courses)

    def list_payment_pages(self):
        return [normalize_payment_page(row) for row in self._records("payment_pages")]

    def get_payment_page(self, record_id):
        for page in self.list_payment_pages():
            if page["id"] == record_id:
                return page
        return None

    def get_staff(self):
        records = self._records("staff")
        for record in records:
            record.setdefault('FullName', record.get('Full Name') or record.get('Username', ''))
        return records


class LocalRecordStore:
    """SQLite-backed store used for local development."""

    def load_registrations(self):
        lookups = db_helper.get_lookup_names()
        registrations = [
            normalize_registration(row, lookups["schools"], lookups["cycles"], lookups["courses"])
            for row in db_helper.get_all_registrations()
        ]
        return registrations, build_filter_options(
            registrations, lookups["schools"], lookups["cycles"], lookups["courses"])

    def list_payment_pages(self):
        return [normalize_payment_page(row) for row in db_helper.get_all_payment_pages()]

    def get_payment_page(self, record_id):
        for page in self.list_payment_pages():
            if page["id"] == record_id:
                return page
        return None

    def get_staff(self):
        return db_helper.get_all_staff()


def get_record_store():
    if settings.USE_LOCAL_DB:
        return LocalRecordStore()
    return SheetsRecordStore()


class SnapshotCache:
    """Holds the registrations snapshot; only ``refresh`` replaces it."""

    def __init__(self, store):
        self.store = store
        self._snapshot = None
        self.version = 0

    def get(self):
        if self._snapshot is None:
            self.refresh()
        return self._snapshot

    def refresh(self):
        try:
            registrations, filter_options = self.store.load_registrations()
        except RecordStoreError:
            raise
        except Exception as exc:
            raise RecordStoreError(f"Unable to load registrations: {exc}") from exc
        self._snapshot = (tuple(registrations), filter_options)
        self.version += 1
        return self._snapshot
