"""Constants for Mail Day Tracker."""

# --- IMAP ---
DEFAULT_IMAP_SERVER = "imap.gmail.com:993"
DEFAULT_IMAP_PORT = 993
DEFAULT_MAILBOX = "MyLocation"
DEFAULT_TRASH_MAILBOX = "[Gmail]/Trash"  # used when LIST exposes no \Trash attribute
CLEANUP_ACTIONS = ("trash", "delete", "off")
DEFAULT_CLEANUP_ACTION = "trash"

# --- Aggregation ---
DEFAULT_COUNTRIES = ("Andorra", "Spain")
DEFAULT_DEDUP_THRESHOLD = 5  # same-day pings per country kept before cleanup
HTML_MARKER = "<html>"
LINE_DELIMITER = " | "

# --- Days API ---
AUTO_NOTE = "[auto-updated from email]"
HTTP_TIMEOUT = 30.0  # seconds
RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)
RETRY_ATTEMPTS = 4

# --- Sync loop / HTTP ---
DEFAULT_SYNC_INTERVAL = 300  # seconds
DEFAULT_PORT = 8080
DEFAULT_LOG_LEVEL = "info"
