"""Telegram notification adapter.

Delivers subscription notifications and renewal prompts through a Telethon
bot client. Formatting lives in notification_formatting.
"""

from __future__ import annotations

from telethon import Button

from adapters.notification_formatting import format_notification, format_renewal_prompt
from core.models import HelpPosting, Notification

RENEWAL_ACTION_KEEP = "keep"
RENEWAL_ACTION_DROP = "drop"

RENEWAL_BUTTONS = {
    "UA": ("Так, актуально", "Видалити"),
    "RU": ("Да, актуально", "Удалить"),
    "EN": ("Keep it", "Delete"),
}


def renewal_callback_data(action: str, posting: HelpPosting) -> bytes:
    return f"{action}:{posting.id}".encode("utf-8")


class TelegramNotifier:
    """Notifier adapter that sends messages to the subscriber's chat."""

    def __init__(self, client) -> None:
        self._client = client

    async def send(self, notification: Notification) -> None:
        """Send the formatted notification to the subscriber."""

        message = format_notification(notification, mode="html")
        await self._client.send_message(notification.chat_id, message, parse_mode="html")

    async def prompt_renewal(self, posting: HelpPosting) -> None:
        """Ask the owner to keep or delete a stale posting."""

        keep_label, drop_label = RENEWAL_BUTTONS.get(posting.language, RENEWAL_BUTTONS["EN"])
        buttons = [
            [
                Button.inline(keep_label, data=renewal_callback_data(RENEWAL_ACTION_KEEP, posting)),
                Button.inline(drop_label, data=renewal_callback_data(RENEWAL_ACTION_DROP, posting)),
            ]
        ]
        await self._client.send_message(posting.chat_id, format_renewal_prompt(posting), buttons=buttons)
