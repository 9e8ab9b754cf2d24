"""Telegram-to-core mapping adapter.

This keeps Telethon-specific details out of the core services.
"""

from __future__ import annotations

from typing import Optional, Tuple
from uuid import UUID

from adapters.telegram_notifier import RENEWAL_ACTION_DROP, RENEWAL_ACTION_KEEP
from core.models import UserContact

# Telegram reports IETF codes; the core speaks UA/RU/EN.
_LANGUAGE_CODES = {"uk": "UA", "ru": "RU", "en": "EN"}


def language_from_code(lang_code: Optional[str]) -> Optional[str]:
    if not lang_code:
        return None
    return _LANGUAGE_CODES.get(lang_code.split("-", 1)[0].lower())


def _display_name(sender) -> str:
    first = getattr(sender, "first_name", None)
    last = getattr(sender, "last_name", None)
    if first or last:
        return " ".join(part for part in [first, last] if part)
    username = getattr(sender, "username", None)
    if username:
        return f"@{username}"
    return str(getattr(sender, "id", "unknown"))


def contact_from_sender(sender, chat_id: int) -> Optional[UserContact]:
    """Build a UserContact for a human sender in the given chat."""

    sender_id = getattr(sender, "id", None)
    if sender is None or sender_id is None:
        return None
    if getattr(sender, "bot", False):
        return None

    return UserContact(
        tg_id=int(sender_id),
        chat_id=int(chat_id),
        name=_display_name(sender),
        language=language_from_code(getattr(sender, "lang_code", None)),
    )


def contact_from_message(message) -> Optional[UserContact]:
    """Build a UserContact from a Telethon message, if it has a sender."""

    return contact_from_sender(getattr(message, "sender", None), message.chat_id)


def parse_renewal_callback(data: bytes) -> Optional[Tuple[str, UUID]]:
    """Decode renewal button data into (action, help id)."""

    try:
        action, _, raw_id = data.decode("utf-8").partition(":")
        help_id = UUID(raw_id)
    except (UnicodeDecodeError, ValueError):
        return None
    if action not in {RENEWAL_ACTION_KEEP, RENEWAL_ACTION_DROP}:
        return None
    return action, help_id
