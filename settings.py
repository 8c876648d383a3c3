import json
import os

import pytz

# Check if running in local development mode
USE_LOCAL_DB = os.getenv('LOCAL_DEV', 'false').lower() == 'true'

SECRET_KEY = os.getenv('SECRET_KEY', 'change-me-in-production')

SPREADSHEET_NAME = os.getenv('SPREADSHEET_NAME', "הרשמות לחוגים")
CREDENTIALS_PATH = os.getenv(
    'GOOGLE_CREDENTIALS_FILE',
    os.path.join(os.path.dirname(__file__), "credentials.json"),
)

PROGRAM_TZ = pytz.timezone(os.getenv('PROGRAM_TIMEZONE', 'Asia/Jerusalem'))

ATTENDANCE_READ_WEBHOOK = os.getenv('ATTENDANCE_READ_WEBHOOK', '')
ATTENDANCE_WRITE_WEBHOOK = os.getenv('ATTENDANCE_WRITE_WEBHOOK', '')
BULK_MESSAGES_WEBHOOK = os.getenv('BULK_MESSAGES_WEBHOOK', '')

TRANZILA_SUPPLIER = os.getenv('TRANZILA_SUPPLIER', '')
TRANZILA_PASSWORD = os.getenv('TRANZILA_PASSWORD', '')
TRANZILA_HANDSHAKE_URL = "https://api.tranzila.com/v1/handshake/create"
TRANZILA_IFRAME_URL = "https://direct.tranzila.com/{supplier}/iframenew.php"
TRANZILA_IFRAME_POST_URL = "https://directng.tranzila.com/{supplier}/iframenew.php"

HTTP_TIMEOUT = float(os.getenv('HTTP_TIMEOUT', '30'))

CONFIG_PATH = os.getenv(
    'PROGRAM_CONFIG',
    os.path.join(os.path.dirname(__file__), "program_config.json"),
)

DEFAULT_PROGRAM_CONFIG = {
    "sheets": {
        "registrations": "הרשמה לניסיון",
        "schools": "בתי ספר",
        "cycles": "מחזורים",
        "courses": "חוגים",
        "payment_pages": "דפי תשלום מותאם אישית",
        "staff": "צוות",
    },
}


def load_program_config(path=None):
    """Read the JSON program file, filling in any missing worksheet names with defaults."""
    path = path or CONFIG_PATH
    config = json.loads(json.dumps(DEFAULT_PROGRAM_CONFIG))
    try:
        with open(path, "r", encoding="utf-8") as config_file:
            data = json.load(config_file)
    except FileNotFoundError:
        print("⚠️  Program config not found. Continuing with default worksheet names.")
        return config

    config["sheets"].update(data.get("sheets", {}))
    return config


PROGRAM_CONFIG = load_program_config()

SHEETS = PROGRAM_CONFIG["sheets"]
# Registrations per table page.
PAGE_SIZE = 50
