"""Shared notification formatting helpers.

Keeping formatting here prevents drift between adapters and keeps messages
consistent regardless of delivery channel.
"""

from __future__ import annotations

import html
from datetime import datetime

from core.models import HelpPosting, Notification

EMOJI_LOCATION = "🏡"
EMOJI_TIME = "⏱"
EMOJI_ITEM = "🔸"

TIMESTAMP_FORMAT = "%H:%M %d.%m.%Y"

RENEWAL_PROMPTS = {
    "UA": "Ваш запис про допомогу давно не оновлювався. Він ще актуальний?",
    "RU": "Ваша запись о помощи давно не обновлялась. Она ещё актуальна?",
    "EN": "Your help posting has not been renewed for a while. Is it still active?",
}


def format_timestamp(value: datetime) -> str:
    return value.astimezone().strftime(TIMESTAMP_FORMAT)


def _body_lines(locality: str, created_at: datetime, categories: tuple[str, ...], description: str) -> list[str]:
    lines = [
        f"{EMOJI_LOCATION} {locality}",
        f"{EMOJI_TIME} {format_timestamp(created_at)}",
    ]
    lines.extend(f"{EMOJI_ITEM} {name}" for name in categories)
    lines.append(description)
    return lines


def _format_text(notification: Notification) -> str:
    lines = [notification.header, ""]
    lines.extend(
        _body_lines(
            notification.locality_name,
            notification.created_at,
            notification.category_names,
            notification.description,
        )
    )
    return "\n".join(lines)


def _format_html(notification: Notification) -> str:
    lines = [f"<b>{html.escape(notification.header)}</b>", ""]
    lines.extend(
        _body_lines(
            html.escape(notification.locality_name),
            notification.created_at,
            tuple(html.escape(name) for name in notification.category_names),
            html.escape(notification.description),
        )
    )
    return "\n".join(lines)


def format_notification(notification: Notification, mode: str) -> str:
    """Return the notification formatted for the requested mode."""

    if mode == "text":
        return _format_text(notification)
    if mode == "html":
        return _format_html(notification)
    raise ValueError(f"Unsupported notification format: {mode}")


def format_renewal_prompt(posting: HelpPosting) -> str:
    """Plain-text reminder asking the owner to keep a stale posting alive."""

    language = posting.language
    header = RENEWAL_PROMPTS.get(language, RENEWAL_PROMPTS["EN"])
    lines = [header, ""]
    lines.extend(
        _body_lines(
            posting.locality.name(language),
            posting.last_activity,
            tuple(category.name(language) for category in posting.categories),
            posting.description,
        )
    )
    return "\n".join(lines)
