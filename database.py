import sqlite3
import os

DB_PATH = os.getenv('LOCAL_DB_PATH', os.path.join(os.path.dirname(__file__), 'registrations_local.db'))

LOOKUP_TABLES = ('schools', 'cycles', 'courses')


def init_database():
    """Initialize the SQLite database with required tables."""
    conn = sqlite3.connect(DB_PATH)
    cursor = conn.cursor()

    # Staff allowed to sign in to the dashboard
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS staff (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT UNIQUE NOT NULL,
            password TEXT NOT NULL,
            full_name TEXT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # Lookup tables referenced by registrations (record id -> display name)
    for table in LOOKUP_TABLES:
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {table} (
                record_id TEXT PRIMARY KEY,
                name TEXT NOT NULL
            )
        ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS registrations (
            record_id TEXT PRIMARY KEY,
            child_name TEXT NOT NULL,
            cycle_id TEXT DEFAULT '',
            parent_phone TEXT DEFAULT '',
            parent_name TEXT DEFAULT '',
            course_id TEXT DEFAULT '',
            school_id TEXT DEFAULT '',
            class TEXT DEFAULT '',
            needs_pickup INTEGER NOT NULL DEFAULT 0,
            trial_date TEXT DEFAULT '',
            in_whatsapp_group INTEGER NOT NULL DEFAULT 0,
            registration_status TEXT DEFAULT '',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS payment_pages (
            record_id TEXT PRIMARY KEY,
            product_name TEXT NOT NULL,
            description TEXT DEFAULT '',
            payment_type TEXT DEFAULT '',
            num_payments INTEGER DEFAULT 1,
            max_payments INTEGER,
            amount REAL NOT NULL DEFAULT 0,
            language TEXT DEFAULT 'il',
            notify_url TEXT DEFAULT ''
        )
    ''')

    _ensure_registration_columns(cursor)

    cursor.execute('CREATE INDEX IF NOT EXISTS idx_registrations_cycle ON registrations(cycle_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_registrations_school ON registrations(school_id)')

    conn.commit()
    conn.close()
    print(f"✓ Database initialized at: {DB_PATH}")


def _ensure_registration_columns(cursor):
    """Ensure newer registration columns exist on older databases."""
    cursor.execute("PRAGMA table_info(registrations)")
    existing_columns = {row[1] for row in cursor.fetchall()}

    if 'discount_type' not in existing_columns:
        cursor.execute("ALTER TABLE registrations ADD COLUMN discount_type TEXT DEFAULT ''")


def get_connection():
    """Get a database connection."""
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row  # Access columns by name
    return conn


def drop_all_tables():
    """Drop all tables (useful for resetting database)."""
    conn = sqlite3.connect(DB_PATH)
    cursor = conn.cursor()

    for table in ('staff', 'registrations', 'payment_pages') + LOOKUP_TABLES:
        cursor.execute(f"DROP TABLE IF EXISTS {table}")

    conn.commit()
    conn.close()
    print("✓ All tables dropped")


if __name__ == "__main__":
    # Initialize database when run directly
    print("Initializing database...")
    init_database()
    print("Database setup complete!")
