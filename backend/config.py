import os

from dotenv import load_dotenv

# -------------------------------------------------
# Load environment variables from .env
# -------------------------------------------------
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)) or str(default))
    except ValueError:
        return default


# ---------------- DATABASE ----------------

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./leads.db")


# ---------------- AUTH ----------------

JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_MINUTES = _env_int("JWT_EXPIRE_MINUTES", 7 * 24 * 60)
BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)

SEED_PASSWORD = os.getenv("SEED_PASSWORD", "password123")


# ---------------- IMPORT ----------------

IMPORT_POLL_INTERVAL_MINUTES = _env_int("IMPORT_POLL_INTERVAL_MINUTES", 10)
SCHEDULER_ENABLED = _env_bool("SCHEDULER_ENABLED", False)

# When set, the scheduler polls this spreadsheet file instead of Google Sheets
EXCEL_FILE_PATH = os.getenv("EXCEL_FILE_PATH")
EXCEL_SOURCE_ID = "excel-import-config"
UPLOAD_SOURCE_ID = "manual-upload"

GOOGLE_SERVICE_ACCOUNT_CREDENTIALS = os.getenv("GOOGLE_SERVICE_ACCOUNT_CREDENTIALS")
GOOGLE_SHEETS_CRED = os.getenv("GOOGLE_SHEETS_CRED", "").strip()


# ---------------- APP ----------------

CORS_ORIGINS = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
