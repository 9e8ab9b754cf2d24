"""Static configuration for helplink.

User-editable settings (retention, dispatch, notification headers, logging)
live in a single JSON file for quick edits without touching Python. Secrets
and deployment paths come from the environment (.env supported).
"""

import json
import os

from dotenv import load_dotenv

from core.config import DispatchConfig, NotificationConfig, ResolverConfig, RetentionConfig
from core.models import DEFAULT_LANGUAGE as _FALLBACK_LANGUAGE

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# config.json sits next to pyproject.toml unless HELPLINK_CONFIG points elsewhere.
CONFIG_PATH = os.getenv("HELPLINK_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Where to store the SQLite database.
DB_PATH = os.getenv("HELPLINK_DB_PATH") or _resolve_path(_CONFIG.get("db_path", "helplink.db"))

# Language used for users who do not report one on first contact.
DEFAULT_LANGUAGE = str(_CONFIG.get("default_language", _FALLBACK_LANGUAGE)).upper()

_resolver = _CONFIG.get("resolver", {})
RESOLVER = ResolverConfig(max_distance=int(_resolver.get("max_distance", 1)))

# Retention controls for idle help postings.
# - policy: "delete", "prompt", or "escalate"
# - stale_after_days: idle time before a post counts as expired
# - delete_after_days: escalation horizon for automatic deletion
# - interval_seconds: how often the reaper scans
_retention = _CONFIG.get("retention", {})
RETENTION = RetentionConfig(
    policy=_retention.get("policy", "prompt"),
    stale_after_days=int(_retention.get("stale_after_days", 7)),
    delete_after_days=int(_retention.get("delete_after_days", 14)),
    interval_seconds=float(_retention.get("interval_seconds", 3600)),
)

_dispatch = _CONFIG.get("dispatch", {})
DISPATCH = DispatchConfig(
    queue_size=int(_dispatch.get("queue_size", 1000)),
    max_retries=int(_dispatch.get("max_retries", 2)),
    retry_delay=float(_dispatch.get("retry_delay", 1.0)),
    dead_letter_limit=int(_dispatch.get("dead_letter_limit", 500)),
)

_notifications = _CONFIG.get("notifications", {})
NOTIFICATIONS = NotificationConfig(
    headers=dict(_notifications.get("headers", {})),
    default_header=_notifications.get("default_header", "New help is available"),
)

# Reference data (localities, categories) used by `helplink seed`.
REFERENCE_DATA_PATH = _resolve_path(_CONFIG.get("reference_data", "data/reference.json"))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
