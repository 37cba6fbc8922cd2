"""
Centralised constants for the action tracker.

Default ignore lists, service patterns, render labels and log settings live
here so they can be imported by any module without circular dependencies.
"""

# ── Version ──────────────────────────────────────────────────────
APP_VERSION = "0.4.0"
SERVICE_NAME = "action_tracker"

# ── Output formats ───────────────────────────────────────────────
FORMAT_TABLE = "table"
FORMAT_CSV = "csv"
FORMAT_JSON = "json"
OUTPUT_FORMATS = frozenset({FORMAT_TABLE, FORMAT_CSV, FORMAT_JSON})
# Log formats that are merged into the log file instead of appended to it
ACCUMULATING_FORMATS = frozenset({FORMAT_CSV, FORMAT_JSON})

# ── Access modes ─────────────────────────────────────────────────
MODE_READ = "read"
MODE_WRITE = "write"

# ── Tables never worth reporting (schema catalogues, migration ledgers) ──
DEFAULT_IGNORED_TABLES = (
    "pg_attribute",
    "pg_index",
    "pg_class",
    "pg_namespace",
    "pg_type",
    "sqlite_master",
    "sqlite_schema",
    "sqlite_sequence",
    "alembic_version",
    "django_migrations",
)

# Statements carrying this marker are catalogue lookups issued by drivers
SCHEMA_MARKER = "SCHEMA"

# ── Service detection ────────────────────────────────────────────
DEFAULT_SERVICE_PATTERNS = (
    {"name": "Pusher", "pattern": r"pusher"},
    {"name": "Honeybadger", "pattern": r"honeybadger"},
    {"name": "Sentry", "pattern": r"sentry"},
    {"name": "Redis", "pattern": r"redis"},
    {"name": "Memcached", "pattern": r"memcache"},
    {"name": "Celery", "pattern": r"celery"},
    {"name": "Mail", "pattern": r"mail|email|smtp"},
    {"name": "HTTP", "pattern": r"http|api"},
)

# ── Lifecycle event names ────────────────────────────────────────
EVENT_ACTION_STARTED = "action_started"
EVENT_TEMPLATE_RENDERED = "template_rendered"
EVENT_MESSAGE_FLASHED = "message_flashed"
EVENT_REQUEST_EXCEPTION = "got_request_exception"
EVENT_LOG_EMITTED = "log_emitted"

# ── Rendering ────────────────────────────────────────────────────
UNKNOWN_ACTION = "Unknown"
ACTION_HEADER = "Action"
HEADER_READ = "Models Read"
HEADER_WRITE = "Models Written"
HEADER_SERVICES = "Services Accessed"
TABLE_TITLE = "Models and Services accessed during request:"
EMPTY_SUMMARY = "No models or services accessed during this request."

CELL_READ = "R"
CELL_WRITE = "W"
CELL_READ_WRITE = "RW"
CELL_SERVICE = "Y"
CELL_NONE = "-"

# ANSI colours used for the printed table
COLORS = {
    "green": "\033[32m",
    "red": "\033[31m",
    "blue": "\033[34m",
    "yellow": "\033[33m",
    "reset": "\033[0m",
}
NO_COLORS = {key: "" for key in COLORS}

# ── Request filtering ────────────────────────────────────────────
DEFAULT_SKIP_PATH_PREFIXES = ("/static", "/assets", "/health", "/favicon")
DEFAULT_SKIP_EXTENSIONS = (".js", ".css", ".png", ".jpg", ".gif", ".ico", ".svg", ".map")

# ── Logging ──────────────────────────────────────────────────────
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB per log file
LOG_BACKUP_COUNT = 5
LOG_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"
ENV_PREFIX = "ACTION_TRACKER_"

# ── Log capture ──────────────────────────────────────────────────
DEFAULT_CAPTURE_LEVEL = "INFO"
# Client-library loggers lowered to the capture level so their INFO lines
# reach the root capture handler.
DEFAULT_CAPTURE_LOGGERS = (
    "redis",
    "celery",
    "kombu",
    "urllib3",
    "requests",
    "httpx",
    "botocore",
    "pusher",
    "honeybadger",
    "sentry_sdk",
    "elasticsearch",
    "pymemcache",
    "flask_mail",
)
