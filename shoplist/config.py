import os

REMOTE_STORE_URL = (os.getenv("REMOTE_STORE_URL") or "").rstrip("/")
REMOTE_STORE_TOKEN = os.getenv("REMOTE_STORE_TOKEN")
REMOTE_TIMEOUT = float(os.getenv("REMOTE_TIMEOUT", "20"))
POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "2"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOCAL_CACHE_PATH = os.getenv("LOCAL_CACHE_PATH", "shoplist-cache.json")

# Run remote write-backs on a daemon thread (fire-and-forget)
SYNC_BACKGROUND_WRITES = os.getenv("SYNC_BACKGROUND_WRITES", "1").lower() not in ("0", "false", "no")

USERS_COLLECTION = "users"
SHARE_CODES_COLLECTION = "shareCodes"
