"""
Database helper functions that mirror the Google Sheets worksheets.
Rows come back keyed by the worksheet column headers, so the record store
normalises local and production data the same way.
"""

import sqlite3
from database import LOOKUP_TABLES, get_connection

# ============= STAFF =============

def get_all_staff():
    """Get all staff as a list of dictionaries (mimics gspread.get_all_records())."""
    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute("SELECT username as Username, password as Password, full_name as FullName FROM staff")

    rows = cursor.fetchall()
    conn.close()

    return [dict(row) for row in rows]

def add_staff(username, password, full_name):
    """Add a new staff member."""
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute(
            "INSERT INTO staff (username, password, full_name) VALUES (?, ?, ?)",
            (username, password, full_name)
        )
        conn.commit()
        return True
    except sqlite3.IntegrityError:
        return False  # Username already exists
    finally:
        conn.close()

# ============= LOOKUPS =============

def add_lookup(table, record_id, name):
    """Add a school, cycle or course display name."""
    if table not in LOOKUP_TABLES:
        raise ValueError(f"Unknown lookup table: {table}")

    conn = get_connection()
    cursor = conn.cursor()
    try:
        cursor.execute(f"INSERT INTO {table} (record_id, name) VALUES (?, ?)", (record_id, name))
        conn.commit()
        return True
    except sqlite3.IntegrityError:
        return False
    finally:
        conn.close()

def get_lookup_names():
    """Return {'schools': {id: name}, 'cycles': {...}, 'courses': {...}}."""
    conn = get_connection()
    cursor = conn.cursor()

    lookups = {}
    for table in LOOKUP_TABLES:
        cursor.execute(f"SELECT record_id, name FROM {table} ORDER BY rowid")
        lookups[table] = {row['record_id']: row['name'] for row in cursor.fetchall()}

    conn.close()
    return lookups

# ============= REGISTRATIONS =============

def get_all_registrations():
    """Get all registrations keyed by the registrations worksheet headers."""
    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute("""
        SELECT
            record_id as "Record ID",
            child_name as "שם מלא ילד",
            cycle_id as "מחזור",
            parent_phone as "טלפון הורה",
            parent_name as "שם מלא הורה",
            course_id as "חוג",
            school_id as "בית ספר",
            class as "כיתה",
            needs_pickup as "האם צריך איסוף מהצהרון",
            trial_date as "תאריך הגעה לשיעור ניסיון",
            in_whatsapp_group as "האם בקבוצת הוואטסאפ",
            registration_status as "סטטוס רישום לחוג",
            discount_type as "סוג הנחה"
        FROM registrations
        ORDER BY rowid
    """)

    rows = cursor.fetchall()
    conn.close()

    return [dict(row) for row in rows]

def add_registration(record_id, child_name, cycle_id='', parent_phone='', parent_name='',
                     course_id='', school_id='', class_name='', needs_pickup=False,
                     trial_date='', in_whatsapp_group=False, registration_status='',
                     discount_type=''):
    """Add a new registration."""
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute(
            """
            INSERT INTO registrations (record_id, child_name, cycle_id, parent_phone, parent_name,
                                       course_id, school_id, class, needs_pickup, trial_date,
                                       in_whatsapp_group, registration_status, discount_type)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (record_id, child_name, cycle_id, parent_phone, parent_name, course_id, school_id,
             class_name, int(bool(needs_pickup)), trial_date, int(bool(in_whatsapp_group)),
             registration_status, discount_type)
        )
        conn.commit()
        return True
    except sqlite3.IntegrityError:
        return False  # Registration already exists
    finally:
        conn.close()

# ============= PAYMENT PAGES =============

def get_all_payment_pages():
    """Get all payment pages keyed by the payment pages worksheet headers."""
    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute("""
        SELECT
            record_id as "Record ID",
            product_name as "שם המוצר",
            description as "תיאור המוצר",
            payment_type as "סוג תשלום",
            num_payments as "כמות תשלומים",
            max_payments as "כמות תשלומים מקסימלית",
            amount as "סכום לתשלום",
            language as "שפה",
            notify_url as "כתובת לעדכון"
        FROM payment_pages
        ORDER BY rowid
    """)

    rows = cursor.fetchall()
    conn.close()

    return [dict(row) for row in rows]

def add_payment_page(record_id, product_name, amount, payment_type='', num_payments=1,
                     max_payments=None, language='il', notify_url='', description=''):
    """Add a new payment page."""
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute(
            """
            INSERT INTO payment_pages (record_id, product_name, description, payment_type,
                                       num_payments, max_payments, amount, language, notify_url)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (record_id, product_name, description, payment_type, num_payments,
             max_payments, amount, language, notify_url)
        )
        conn.commit()
        return True
    except sqlite3.IntegrityError:
        return False
    finally:
        conn.close()
