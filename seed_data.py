"""
Seed the local database with test data for development.
"""

from datetime import datetime, timedelta

from database import init_database, drop_all_tables
from db_helper import add_staff, add_lookup, add_registration, add_payment_page
from settings import PROGRAM_TZ


def seed_database():
    """Populate the database with test data."""

    print("=" * 60)
    print("SEEDING LOCAL DATABASE WITH TEST DATA")
    print("=" * 60)

    # Reset database
    print("\n[1] Dropping existing tables...")
    drop_all_tables()

    print("[2] Initializing fresh database...")
    init_database()

    # Add staff
    print("\n[3] Adding staff...")
    staff = [
        ("admin", "admin123", "רכזת החוגים"),
        ("office", "pass123", "מזכירות"),
    ]

    for username, password, full_name in staff:
        if add_staff(username, password, full_name):
            print(f"  ✓ Added staff member: {full_name} (username: {username})")
        else:
            print(f"  ✗ Failed to add: {full_name}")

    # Add lookup tables
    print("\n[4] Adding schools, cycles and courses...")
    lookups = [
        ("schools", "recSchool1", "גורדון"),
        ("schools", "recSchool2", "בית ספר הגפן"),
        ("cycles", "recCycle1", "רוניקה א-ב - ראשון - 16:15"),
        ("cycles", "recCycle2", "רובוטיקה ג-ד - שלישי - 15:00"),
        ("courses", "recCourse1", "אלקטרוניקה"),
        ("courses", "recCourse2", "רובוטיקה"),
    ]
    for table, record_id, name in lookups:
        add_lookup(table, record_id, name)
        print(f"  ✓ {table}: {name}")

    # Add registrations
    print("\n[5] Adding registrations...")
    trial_date = (datetime.now(PROGRAM_TZ) + timedelta(days=3)).strftime("%Y-%m-%d")
    registrations = [
        ("rec001", "גיל אלבז", "recCycle1", "0505518585", "אריאל אלבז", "recCourse1", "recSchool1", "א", True, True, "אושר"),
        ("rec002", "ליאם יורמן", "recCycle1", "0505518586", "דניאלה יורמן", "recCourse1", "recSchool1", "ב", True, True, "אושר"),
        ("rec003", "פלא ניב", "recCycle1", "0505518587", "מיכל ניב", "recCourse1", "recSchool1", "א", False, False, "ממתין"),
        ("rec004", "נועה כהן", "recCycle2", "0505518588", "שרה כהן", "recCourse2", "recSchool2", "ג", True, True, "אושר"),
        ("rec005", "דוד לוי", "recCycle2", "0505518589", "מיכאל לוי", "recCourse2", "recSchool2", "ד", False, True, "נדחה"),
        ("rec006", "מיכל אברהם", "recCycle2", "0505518590", "רחל אברהם", "recCourse2", "recSchool2", "ג", True, False, "אושר"),
    ]

    for (record_id, child, cycle_id, phone, parent, course_id, school_id,
         class_name, pickup, whatsapp, status) in registrations:
        if add_registration(record_id, child, cycle_id=cycle_id, parent_phone=phone,
                            parent_name=parent, course_id=course_id, school_id=school_id,
                            class_name=class_name, needs_pickup=pickup, trial_date=trial_date,
                            in_whatsapp_group=whatsapp, registration_status=status):
            print(f"  ✓ Added registration: {child} ({status})")
        else:
            print(f"  ✗ Failed to add: {child}")

    # Add payment pages
    print("\n[6] Adding payment pages...")
    add_payment_page("recPay1", "דמי רישום לחוג אלקטרוניקה", 350, payment_type="אשראי",
                     num_payments=1, max_payments=3)
    add_payment_page("recPay2", "מנוי חודשי רובוטיקה", 220, payment_type="הוראת קבע",
                     num_payments=10)
    print("  ✓ Added 2 payment pages")

    print("\n" + "=" * 60)
    print("DATABASE SEEDING COMPLETE!")
    print("=" * 60)
    print("\nTest Login Credentials:")
    print("  Username: admin")
    print("  Password: admin123")
    print("=" * 60)

if __name__ == "__main__":
    seed_database()
