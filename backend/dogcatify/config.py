"""
Runtime configuration read from environment variables (optionally from a project-root .env).
Modules read these through `config.<NAME>` at call time so tests can monkeypatch them.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

# config.py lives in backend/dogcatify/; project root is two levels up from backend
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
DATA_DIR = os.environ.get("DATA_DIR", str(PROJECT_ROOT / "data"))

# Database
SQLITE_DB_PATH = os.environ.get("SQLITE_DB_PATH", str(PROJECT_ROOT / "data" / "dogcatify.db"))
SQL_ECHO = os.environ.get("SQL_ECHO", "").lower() == "true"

# Notification outbox delivery
NOTIFICATION_WEBHOOK_URL = os.environ.get(
    "NOTIFICATION_WEBHOOK_URL", "http://localhost:8000/api/webhook/notifications"
)
NOTIFICATION_MAX_ATTEMPTS = int(os.environ.get("NOTIFICATION_MAX_ATTEMPTS", "5"))

# External AI / vision functions
FUNCTIONS_URL = os.environ.get("FUNCTIONS_URL", "http://localhost:54321/functions/v1")
FUNCTIONS_API_KEY = os.environ.get("FUNCTIONS_API_KEY")
RECOMMENDATION_CACHE_TTL_DAYS = int(os.environ.get("RECOMMENDATION_CACHE_TTL_DAYS", "30"))

# Datadog log forwarding (disabled without a key)
DD_API_KEY = os.environ.get("DD_API_KEY")
DD_LOGS_URL = os.environ.get("DD_LOGS_URL", "https://http-intake.logs.datadoghq.com/api/v2/logs")

# Admin / cron guards
ADMIN_TOKEN = os.environ.get("ADMIN_TOKEN", "demo-admin-token")
CRON_SECRET = os.environ.get("CRON_SECRET", "default-secret-change-me")

# Business rules
ALERT_LEAD_DAYS = int(os.environ.get("ALERT_LEAD_DAYS", "7"))
ORDER_EXPIRY_MINUTES = int(os.environ.get("ORDER_EXPIRY_MINUTES", "10"))
DEFAULT_COMMISSION_PERCENTAGE = float(os.environ.get("DEFAULT_COMMISSION_PERCENTAGE", "5.0"))
