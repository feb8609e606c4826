"""Static configuration for feedsieve.

All user-editable settings (database, engine tuning, rules, logging) live in
a single JSON file for quick edits without touching Python.

The file is taken from ``FEEDSIEVE_CONFIG`` when set, otherwise from the
source checkout, otherwise from the current working directory (the usual
case for an installed ``feedsieve`` script). Relative paths inside it are
resolved against the directory holding the config file.
"""

import json
import os

from dotenv import load_dotenv

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# .env may point at a different config file or database.
load_dotenv()


def default_config_path(project_root: str, cwd: str) -> str:
    """Prefer the checkout's config.json, fall back to the working directory."""

    candidate = os.path.join(project_root, "config.json")
    if os.path.exists(candidate):
        return candidate
    return os.path.join(cwd, "config.json")


CONFIG_PATH = os.path.abspath(
    os.getenv("FEEDSIEVE_CONFIG") or default_config_path(PROJECT_ROOT, os.getcwd())
)
BASE_DIR = os.path.dirname(CONFIG_PATH)


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(
            f"Config file not found: {CONFIG_PATH} (set FEEDSIEVE_CONFIG to point at one)"
        )

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(BASE_DIR, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Where to store the SQLite database.
_database = _CONFIG.get("database", {})
DB_PATH = _resolve_path(os.getenv("FEEDSIEVE_DB_PATH") or _database.get("path", "feedsieve.db"))

# Owner whose rules the CLI works with when --owner is not given.
OWNER_ID = os.getenv("FEEDSIEVE_OWNER_ID") or _CONFIG.get("owner_id", "default-user")

# Engine tuning:
# - CACHE_TTL_SECONDS: how long an owner's rule snapshot is reused
# - REGEX_TIMEOUT_SECONDS: upper bound for a single regex search
# - STATS_WORKERS: background threads writing match counters
_engine = _CONFIG.get("engine", {})
CACHE_TTL_SECONDS = float(_engine.get("cache_ttl_seconds", 300))
REGEX_TIMEOUT_SECONDS = float(_engine.get("regex_timeout_seconds", 0.05))
STATS_WORKERS = int(_engine.get("stats_workers", 1))

# Rules can be seeded from config.json with `feedsieve import-rules`.
RULES_CONFIG = _CONFIG.get("rules", [])

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
