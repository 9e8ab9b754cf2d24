"""Bot credentials and the Telethon client helplink runs on."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv
from telethon import TelegramClient

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class BotCredentials:
    api_id: int
    api_hash: str
    bot_token: str
    session_name: str = "helplink"


def load_credentials() -> BotCredentials:
    """Read API_ID, API_HASH, BOT_TOKEN and SESSION_NAME from the environment (.env honoured)."""

    load_dotenv()
    missing = [name for name in ("API_ID", "API_HASH", "BOT_TOKEN") if not os.getenv(name)]
    if missing:
        raise RuntimeError(f"Missing {', '.join(missing)} in environment")

    api_id = os.environ["API_ID"]
    if not api_id.isdigit():
        raise RuntimeError("API_ID must be numeric")
    return BotCredentials(
        api_id=int(api_id),
        api_hash=os.environ["API_HASH"],
        bot_token=os.environ["BOT_TOKEN"],
        session_name=os.getenv("SESSION_NAME") or "helplink",
    )


def build_client(credentials: BotCredentials) -> TelegramClient:
    """Client bound to the bot session file; call `start_bot` before serving."""

    LOGGER.info("Preparing bot session '%s'", credentials.session_name)
    return TelegramClient(credentials.session_name, credentials.api_id, credentials.api_hash)


def start_bot(client: TelegramClient, credentials: BotCredentials) -> TelegramClient:
    """Log the bot in with its token; the session file caches the authorization."""

    return client.start(bot_token=credentials.bot_token)
