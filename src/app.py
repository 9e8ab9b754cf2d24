"""Application entry point for the helplink bot."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from typing import Iterable, Optional

from art import tprint
from telethon import events

import settings
from adapters.reference_data import read_reference_file
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_mapper import contact_from_message, contact_from_sender, parse_renewal_callback
from adapters.telegram_notifier import RENEWAL_ACTION_KEEP, TelegramNotifier
from client import build_client, load_credentials, start_bot
from core.dispatcher import NotificationDispatcher
from core.errors import NotFound
from core.helps import HelpService
from core.localities import LocalityResolver
from core.matcher import SubscriptionMatcher
from core.ports import NotifierPort, StoragePort
from core.processor import HelpProcessor
from core.reaper import ExpiryReaper
from core.subscriptions import SubscriptionService
from core.users import UserService

NAME = "HELPLINK"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _SecretMaskingFormatter(logging.Formatter):
    """Formatter that blanks out credential values wherever they surface in a record."""

    MASK = "<redacted>"

    def __init__(self, secrets: Iterable[str]) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        # Longest first so a token containing another secret is masked whole.
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        for secret in self._secrets:
            text = text.replace(secret, self.MASK)
        return text


def _secrets_to_mask(config: dict) -> list[str]:
    """Values of the env vars listed under logging.redact.patterns (BOT_TOKEN, API_HASH...)."""

    redact = (config or {}).get("redact", {})
    if not redact.get("enabled", False):
        return []
    return [value for value in (os.getenv(name) for name in redact.get("patterns", [])) if value]


def _rotating_log_file(file_cfg: dict) -> RotatingFileHandler:
    path = file_cfg.get("path", "logs/helplink.log")
    if not os.path.isabs(path):
        path = os.path.join(settings.PROJECT_ROOT, path)
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 5)),
        encoding="utf-8",
    )


def _setup_logging() -> None:
    """Install console and rotating-file handlers from the `logging` block of config.json."""

    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    if config.get("file", {}).get("enabled", False):
        handlers.append(_rotating_log_file(config["file"]))
    if not handlers:
        return

    formatter = _SecretMaskingFormatter(_secrets_to_mask(config))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers)


@dataclass
class Services:
    """Core services wired against one storage and one notifier."""

    helps: HelpService
    subscriptions: SubscriptionService
    matcher: SubscriptionMatcher
    users: UserService
    localities: LocalityResolver
    dispatcher: NotificationDispatcher
    processor: HelpProcessor


def build_services(storage: StoragePort, notifier: NotifierPort) -> Services:
    helps = HelpService(storage)
    subscriptions = SubscriptionService(storage)
    matcher = SubscriptionMatcher(storage)
    dispatcher = NotificationDispatcher(notifier, settings.DISPATCH)
    return Services(
        helps=helps,
        subscriptions=subscriptions,
        matcher=matcher,
        users=UserService(storage, settings.DEFAULT_LANGUAGE),
        localities=LocalityResolver(storage, settings.RESOLVER),
        dispatcher=dispatcher,
        processor=HelpProcessor(helps, subscriptions, matcher, dispatcher, settings.NOTIFICATIONS),
    )


def _open_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    return storage


async def _serve(client, services: Services, reaper: ExpiryReaper) -> None:
    logger = logging.getLogger(__name__)

    @client.on(events.NewMessage(incoming=True, func=lambda e: e.is_private))
    async def on_message(event) -> None:
        try:
            contact = contact_from_message(event.message)
            if contact is not None:
                await services.users.register(contact)
        except Exception:
            logger.exception("Error while registering sender")

    @client.on(events.CallbackQuery())
    async def on_renewal(event) -> None:
        decoded = parse_renewal_callback(event.data)
        if decoded is None:
            return
        action, help_id = decoded
        try:
            contact = contact_from_sender(await event.get_sender(), event.chat_id)
            if contact is None:
                return
            user = await services.users.register(contact)
            posting = await services.helps.get_by_id(help_id)
            if posting.creator_id != user.id:
                logger.warning("User %s tried to act on help %s owned by %s", user.id, help_id, posting.creator_id)
                return
            if action == RENEWAL_ACTION_KEEP:
                await services.helps.renew(help_id)
            else:
                await services.helps.delete(help_id)
            await event.answer("OK")
        except NotFound:
            await event.answer("Not found")
        except Exception:
            logger.exception("Error while handling renewal callback for help %s", help_id)

    services.dispatcher.start()
    reaper_task = asyncio.create_task(reaper.run_forever(), name="expiry-reaper")
    logger.info("Bot connected. Listening for incoming messages...")
    try:
        await client.run_until_disconnected()
    finally:
        reaper_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reaper_task
        await services.dispatcher.stop()


def _run() -> None:
    _print_banner()
    _setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Starting helplink")

    credentials = load_credentials()
    storage = _open_storage()
    client = build_client(credentials)
    notifier = TelegramNotifier(client)
    services = build_services(storage, notifier)
    reaper = ExpiryReaper(services.helps, settings.RETENTION, prompter=notifier)
    logger.info("Retention policy - %s", settings.RETENTION.policy)

    start_bot(client, credentials)
    client.loop.run_until_complete(_serve(client, services, reaper))


def _seed(path: Optional[str]) -> None:
    _setup_logging()
    path = path or settings.REFERENCE_DATA_PATH
    localities, categories = read_reference_file(path)
    _open_storage().load_reference_data(localities, categories)
    print(f"Loaded {len(localities)} localities and {len(categories)} categories from {path}")


def _resolve(text: str) -> None:
    resolver = LocalityResolver(_open_storage(), settings.RESOLVER)
    candidates = asyncio.run(resolver.resolve(text))
    if not candidates:
        print("No localities match.")
        return

    language = settings.DEFAULT_LANGUAGE
    for index, candidate in enumerate(candidates, start=1):
        locality = candidate.locality
        region = candidate.region_name(language) or "-"
        print(
            f"{index}. {locality.name(language)} | {locality.type.value} | {region}"
            f" | id={locality.id} | distance={candidate.distance}"
        )


def _stats() -> None:
    users = UserService(_open_storage(), settings.DEFAULT_LANGUAGE)
    stats = asyncio.run(users.activity_stats())
    print(f"Active helps: {stats.active_helps}")
    print(f"Active subscriptions: {stats.active_subscriptions}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="helplink")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot")
    seed_parser = subparsers.add_parser("seed", help="Load localities and categories")
    seed_parser.add_argument("file", nargs="?", help="Reference data JSON (defaults to config)")
    resolve_parser = subparsers.add_parser("resolve", help="Resolve free text to localities")
    resolve_parser.add_argument("text")
    subparsers.add_parser("stats", help="Show active helps and subscriptions")

    args = parser.parse_args(argv)
    if args.command == "seed":
        _seed(args.file)
        return
    if args.command == "resolve":
        _resolve(args.text)
        return
    if args.command == "stats":
        _stats()
        return
    _run()


if __name__ == "__main__":
    main()
