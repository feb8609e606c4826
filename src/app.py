"""Application entry point for the feedsieve batch runner."""

from __future__ import annotations

import argparse
import json
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from art import tprint
from rich.console import Console

import settings
from adapters.result_formatting import build_stats_table, format_results
from adapters.sqlite_storage import SQLiteRuleStore
from core.authoring import RuleAuthoring, RuleValidationError
from core.config import EngineConfig
from core.engine import FilterEngine
from core.models import FilterContext

NAME = "FEEDSIEVE"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        # StreamHandler writes to stderr, keeping stdout clean for results.
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/feedsieve.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.BASE_DIR, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _build_store() -> SQLiteRuleStore:
    store = SQLiteRuleStore(settings.DB_PATH)
    store.init_db()
    return store


def _build_engine(store: SQLiteRuleStore) -> FilterEngine:
    config = EngineConfig(
        cache_ttl_seconds=settings.CACHE_TTL_SECONDS,
        regex_timeout_seconds=settings.REGEX_TIMEOUT_SECONDS,
        stats_workers=settings.STATS_WORKERS,
    )
    return FilterEngine(store, config=config)


def _context_from_item(item: dict[str, Any]) -> FilterContext:
    title = item.get("title")
    url = item.get("url") or item.get("link")
    subscription_id = item.get("subscriptionId") or item.get("subscription_id")
    # Fail fast on items we could not classify meaningfully.
    if title is None or not url or not subscription_id:
        raise RuntimeError(f"Item is missing title, url or subscriptionId: {item!r}")
    return FilterContext(
        title=str(title),
        url=str(url),
        subscription_id=str(subscription_id),
        content=item.get("content"),
        content_text=item.get("contentText") or item.get("content_text"),
        author=item.get("author"),
        category_id=item.get("categoryId") or item.get("category_id"),
    )


def _load_items(path: str) -> list[FilterContext]:
    with open(path, "r", encoding="utf-8") as handle:
        raw = json.load(handle)
    if not isinstance(raw, list):
        raise RuntimeError("Items file must contain a JSON list")
    return [_context_from_item(item) for item in raw]


def _init_db() -> None:
    _print_banner()
    _build_store()
    logging.getLogger(__name__).info("Database ready at %s", settings.DB_PATH)


def _import_rules(owner_id: str) -> None:
    _print_banner()
    logger = logging.getLogger(__name__)
    store = _build_store()
    engine = _build_engine(store)
    authoring = RuleAuthoring(store, engine.cache)

    existing = {rule.name for rule in authoring.list_rules(owner_id)}
    imported = 0
    for raw_rule in settings.RULES_CONFIG:
        if raw_rule.get("name") in existing:
            logger.info("Skipping existing rule %s", raw_rule.get("name"))
            continue
        try:
            authoring.create(owner_id, raw_rule)
        except RuleValidationError as exc:
            logger.error("Rejected rule %s: %s", raw_rule.get("name"), exc)
            continue
        imported += 1
    engine.close()
    logger.info("%s rules imported for %s", imported, owner_id)


def _classify(owner_id: str, items_path: str, output: str) -> None:
    contexts = _load_items(items_path)
    store = _build_store()
    engine = _build_engine(store)
    try:
        results = engine.apply_filters_batch(owner_id, contexts)
    finally:
        engine.close()
    print(format_results(results, output))
    logging.getLogger(__name__).info(
        "Classified %s items: %s filtered",
        len(results),
        sum(1 for result in results.values() if result.is_filtered),
    )


def _stats(owner_id: str) -> None:
    _print_banner()
    store = _build_store()
    Console().print(build_stats_table(store.list_rules(owner_id)))


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="feedsieve")
    parser.add_argument("--owner", default=None, help="Rule owner id (defaults to config owner_id)")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init-db", help="Create the rule database")
    subparsers.add_parser("import-rules", help="Load rules from config.json")
    classify = subparsers.add_parser("classify", help="Apply filter rules to a JSON list of items")
    classify.add_argument("items", help="Path to a JSON file with a list of items")
    classify.add_argument("--format", choices=("json", "text"), default="json")
    subparsers.add_parser("stats", help="Show rule match statistics")

    args = parser.parse_args(argv)
    _configure_logging()
    owner_id = args.owner or settings.OWNER_ID

    if args.command == "import-rules":
        _import_rules(owner_id)
        return
    if args.command == "classify":
        _classify(owner_id, args.items, args.format)
        return
    if args.command == "stats":
        _stats(owner_id)
        return
    if args.command == "init-db":
        _init_db()
        return
    parser.print_help()


if __name__ == "__main__":
    main()
