import os
from datetime import datetime, date, timezone
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

ENV = os.getenv("ENV", "TEST").upper()

DEFAULTS = {
    "TEST": {
        "M3_API_URL": "https://m3tst.example.local:21108/m3api-rest",
        "DSN": "M3_Test64",
        "DB_USER": "odbcuser",
        "DB_PASS": "odbcpass",
        "M3_CONO": "100",
    },
    "LIVE": {
        "M3_API_URL": "https://m3prd.example.local:21108/m3api-rest",
        "DSN": "M3_Live64",
        "DB_USER": "m3read",
        "DB_PASS": "m3read",
        "M3_CONO": "100",
    }
}

cfg = DEFAULTS["LIVE"] if ENV == "LIVE" else DEFAULTS["TEST"]

M3_API_URL  = os.getenv("M3_API_URL", cfg["M3_API_URL"]).rstrip("/")
M3_API_USER = os.getenv("M3_API_USER", "")
M3_API_PASS = os.getenv("M3_API_PASS", "")
DSN         = os.getenv("DSN", cfg["DSN"])
DB_USER     = os.getenv("DB_USER", cfg["DB_USER"])
DB_PASS     = os.getenv("DB_PASS", cfg["DB_PASS"])
M3_SCHEMA   = os.getenv("M3_SCHEMA", "MVXJDTA")

# Session context (company / user running the transaction)
M3_CONO = int(os.getenv("M3_CONO", cfg["M3_CONO"]))
M3_USER = os.getenv("M3_USER", "PRETEXT")

# Read cap for table scans. 10000 is both default and ceiling.
MAX_RECORDS_CEILING = 10000
API_TIMEOUT = int(os.getenv("API_TIMEOUT", "60"))


def clamp_max_records(value) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return MAX_RECORDS_CEILING
    if n <= 0 or n >= MAX_RECORDS_CEILING:
        return MAX_RECORDS_CEILING
    return n


MAX_RECORDS = clamp_max_records(os.getenv("MAX_RECORDS", MAX_RECORDS_CEILING))

# --- DELIVERY LINE SQL ---
# Change table/columns here if your delivery status lives elsewhere (e.g. MHDISH).
DELIVERY_LINES_SQL = os.getenv("DELIVERY_LINES_SQL", f"""
SELECT
    d.UACONO AS CONO,
    d.UAORNO AS ORNO,
    d.UADLIX AS DLIX,
    d.UAORST AS ORST
FROM {M3_SCHEMA}.ODHEAD d
WHERE d.UACONO = ?
  AND d.UAORNO = ?
ORDER BY d.UADLIX
""").strip()


# Email recipients
ADMIN_EMAILS = [e.strip() for e in os.getenv(
    "ADMIN_EMAILS",
    ""
).split(",") if e.strip()]

EMAIL_CONFIG = {
    "smtp_server": os.getenv("SMTP_SERVER", "smtp.office365.com"),
    "smtp_port": int(os.getenv("SMTP_PORT", 587)),
    "smtp_username": os.getenv("SMTP_USERNAME", ""),
    "smtp_password": os.getenv("SMTP_PASSWORD", ""),  # set via ENV
    "from_addr": os.getenv("FROM_EMAIL", "m3-pretext@example.local"),
}

# ---------------- Paths (stable, absolute) ----------------
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Logging
LOG_DIR = os.getenv("LOG_DIR", os.path.join(BASE_DIR, "logs"))
LOG_FILE = os.getenv("LOG_FILE", "pretext_sync.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()

# Local run ledger (SQLite)
STATE_DB_PATH = os.getenv("STATE_DB_PATH", os.path.join(BASE_DIR, "state.db"))


# -------------- DB Helpers --------------
def get_db_conn():
    import pyodbc
    return pyodbc.connect(
        f"DSN={DSN};UID={DB_USER};PWD={DB_PASS}",
        autocommit=False,
        timeout=30,
    )

def get_readonly_conn():
    import pyodbc
    return pyodbc.connect(
        f"DSN={DSN};UID={DB_USER};PWD={DB_PASS}",
        autocommit=True,
        timeout=30,
    )

# -------------- HTTP Session --------------
# CRS980MI calls are attempted exactly once per run.
SESSION = requests.Session()
retries = Retry(total=0, raise_on_status=False)
SESSION.mount("http://", HTTPAdapter(max_retries=retries))
SESSION.mount("https://", HTTPAdapter(max_retries=retries))
if M3_API_USER:
    SESSION.auth = (M3_API_USER, M3_API_PASS)
SESSION.headers.update({"Accept": "application/json"})

def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

def today_yyyymmdd(today: date | None = None) -> int:
    return int((today or date.today()).strftime("%Y%m%d"))
