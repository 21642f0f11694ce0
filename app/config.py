import os
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.dirname(__file__))

DATABASE_URL = os.getenv("DATABASE_URL")  # Set in production → PostgreSQL; absent locally → SQLite
SQLITE_PATH = os.getenv("SQLITE_PATH", os.path.join(BASE_DIR, "reel_share.db"))

SECRET_KEY = os.getenv("SECRET_KEY", "fallback-secret-key")
TOKEN_MAX_AGE = int(os.getenv("TOKEN_MAX_AGE", str(7 * 24 * 3600)))

# Every outbound scraper request uses this timeout (seconds)
SCRAPER_TIMEOUT = float(os.getenv("SCRAPER_TIMEOUT", "15"))
BULK_IMPORT_LIMIT = int(os.getenv("BULK_IMPORT_LIMIT", "50"))
# Hard cap on raw entries per bulk request, malformed ones included
BULK_MAX_ENTRIES = int(os.getenv("BULK_MAX_ENTRIES", str(2 * BULK_IMPORT_LIMIT)))

VAPID_PUBLIC_KEY = os.getenv("VAPID_PUBLIC_KEY")
VAPID_PRIVATE_KEY = os.getenv("VAPID_PRIVATE_KEY")
VAPID_SUBJECT = os.getenv("VAPID_SUBJECT", "mailto:noreply@example.com")
NOTIFICATION_ICON = os.getenv("NOTIFICATION_ICON", "/icon.png")
NOTIFICATION_URL = os.getenv("NOTIFICATION_URL", "/viewer")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
