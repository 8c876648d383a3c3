"""
Per-cohort attendance: reading and writing through the attendance webhooks,
and joining the answer with the cohort's registrations for the arrivals view.
"""

from datetime import datetime

import pytz

import settings
import webhooks
from filter_engine import FilterState, SimpleFilters, apply_filters


def today_str():
    return datetime.now(settings.PROGRAM_TZ).strftime("%Y-%m-%d")


def _utc_timestamp():
    return datetime.now(pytz.utc).isoformat()


def fetch_attendance(cohort_id, date=None, full_history=False, client=None):
    """Return one day's attendance map, or the full history for the cohort."""
    if not cohort_id:
        raise ValueError("cohortId is required")

    body = {"cohortId": cohort_id}
    if full_history:
        body["fullHistory"] = True
    else:
        date = date or today_str()
        body["date"] = date

    response = webhooks.post_json(settings.ATTENDANCE_READ_WEBHOOK, body, client=client)
    data = webhooks.read_body(response)

    if full_history:
        result = {"history": {}, "dates": [], "cohortId": cohort_id}
    else:
        result = {"attendance": {}, "notes": {}, "date": date, "cohortId": cohort_id}

    if isinstance(data, dict):
        result.update(data)
    else:
        print(f"Attendance webhook returned text: {data!r}")
    return result


def submit_attendance(cohort_id, cohort_name, date, arrivals, client=None):
    """Send the marked arrivals for one cohort and day."""
    if not cohort_id or not cohort_name or not date or not isinstance(arrivals, list):
        raise ValueError("Missing required fields: cohortId, cohortName, date, and arrivals are required")

    payload = {
        "cohortId": cohort_id,
        "cohortName": cohort_name,
        "date": date,
        "arrivals": arrivals,
        "timestamp": _utc_timestamp(),
    }
    print(f"Sending attendance for {cohort_name} ({cohort_id}) on {date}: {len(arrivals)} arrivals")
    response = webhooks.post_json(settings.ATTENDANCE_WRITE_WEBHOOK, payload, client=client)

    return {
        "success": True,
        "message": f"Attendance saved successfully for {len(arrivals)} students",
        "result": webhooks.read_body(response),
    }


def cohort_records(records, cohort_id, filter_state=None):
    """Registrations of one cohort, optionally narrowed by the view's own filters."""
    cohort_state = FilterState.from_controls(simple=SimpleFilters((("cohort_id", cohort_id),)))
    selected = apply_filters(records, cohort_state)
    if filter_state is not None:
        selected = apply_filters(selected, filter_state)
    return selected


def build_roster(records, cohort_id, attendance=None, notes=None, filter_state=None):
    attendance = attendance or {}
    notes = notes or {}
    roster = []
    for record in cohort_records(records, cohort_id, filter_state):
        row = dict(record)
        row["arrived"] = bool(attendance.get(record["id"], False))
        row["note"] = notes.get(record["id"], "")
        roster.append(row)
    return roster


def arrivals_payload(records, marks):
    """The arrivals list sent to the attendance webhook for ``records``."""
    return [
        {
            "id": record["id"],
            "arrived": bool(marks.get(record["id"], False)),
            "childName": record.get("child_name", ""),
            "parentName": record.get("parent_name", ""),
            "parentPhone": record.get("parent_phone", ""),
        }
        for record in records
    ]
