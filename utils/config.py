"""
Environment configuration for the webhook bridge.
Values are read once at import; a .env file at the repo root is honoured
without overriding the shell environment.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

try:
    load_dotenv()
    root_env = Path(__file__).resolve().parents[1] / ".env"
    if root_env.exists():
        load_dotenv(dotenv_path=str(root_env), override=False)
except Exception:
    pass


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


REGISTRY_PATH = os.getenv("REGISTRY_PATH") or os.path.join(os.getcwd(), "data", "forms.json")
ADMIN_SECRET = os.getenv("ADMIN_SECRET", "")

# FormSG signing key (base64, 32 bytes) for the environment the forms live in
FORMSG_PUBLIC_KEY = os.getenv("FORMSG_PUBLIC_KEY", "")
FORMSG_SIGNATURE_MAX_AGE_MS = _int_env("FORMSG_SIGNATURE_MAX_AGE_MS", 5 * 60 * 1000)
WEBHOOK_URI_SCHEME = (os.getenv("WEBHOOK_URI_SCHEME") or "https").strip().lower()

GOOGLE_SERVICE_ACCOUNT_FILE = os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE") or os.path.join(os.getcwd(), "account.json")
SHEETS_TIMEOUT_SECONDS = _float_env("SHEETS_TIMEOUT_SECONDS", 20.0)

ADMIN_RATE_LIMIT = os.getenv("ADMIN_RATE_LIMIT", "30/minute")
PORT = _int_env("PORT", 8080)
