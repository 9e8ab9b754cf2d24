from __future__ import annotations

import asyncio

from conftest import FOOD, HOUSING, MEDS, VILSHANKA, VORZEL, FakeClock, register
from core.config import DispatchConfig, NotificationConfig
from core.dispatcher import NotificationDispatcher
from core.helps import HelpService
from core.matcher import SubscriptionMatcher
from core.models import Notification
from core.processor import HelpProcessor
from core.subscriptions import SubscriptionService


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def send(self, notification: Notification) -> None:
        self.sent.append(notification)


def _build(storage, clock: FakeClock, notifier: FakeNotifier):
    helps = HelpService(storage, clock)
    subscriptions = SubscriptionService(storage, clock)
    dispatcher = NotificationDispatcher(notifier, DispatchConfig())
    processor = HelpProcessor(
        helps,
        subscriptions,
        SubscriptionMatcher(storage),
        dispatcher,
        NotificationConfig(headers={"EN": "Help nearby", "UA": "Dopomoha poruch"}),
    )
    return processor, subscriptions, dispatcher


def test_publish_help_notifies_each_interested_user_once(storage, clock: FakeClock) -> None:
    notifier = FakeNotifier()
    processor, subscriptions, dispatcher = _build(storage, clock, notifier)
    volunteer = register(storage, 1)
    seeker_ua = register(storage, 2, language="UA")
    seeker_en = register(storage, 3, language="EN")
    uninterested = register(storage, 4)

    async def scenario():
        dispatcher.start()
        await subscriptions.create(seeker_ua.id, FOOD, VORZEL)
        await subscriptions.create(seeker_ua.id, MEDS, VILSHANKA)
        await subscriptions.create(seeker_en.id, MEDS, VILSHANKA)
        await subscriptions.create(uninterested.id, HOUSING, VILSHANKA)
        posting = await processor.publish_help(volunteer.id, [FOOD, MEDS], VILSHANKA, "bread and bandages")
        await dispatcher.stop()
        return posting

    posting = asyncio.run(scenario())

    by_chat = {notification.chat_id: notification for notification in notifier.sent}
    assert len(notifier.sent) == 2
    assert set(by_chat) == {seeker_ua.chat_id, seeker_en.chat_id}
    assert by_chat[seeker_ua.chat_id].header == "Dopomoha poruch"
    assert by_chat[seeker_en.chat_id].category_names == ("Food", "Medicine")
    assert all(n.help_id == posting.id for n in notifier.sent)
    assert posting.description == "bread and bandages"


def test_subscribe_returns_existing_postings(storage, clock: FakeClock) -> None:
    notifier = FakeNotifier()
    processor, _, dispatcher = _build(storage, clock, notifier)
    volunteer = register(storage, 1)
    seeker = register(storage, 2)

    async def scenario():
        dispatcher.start()
        posting = await processor.publish_help(volunteer.id, [FOOD], VORZEL, "bread")
        subscription_id, existing = await processor.subscribe(seeker.id, FOOD, VILSHANKA)
        await dispatcher.stop()
        return posting, subscription_id, existing

    posting, subscription_id, existing = asyncio.run(scenario())

    assert [item.id for item in existing] == [posting.id]
    assert storage.subscription_exists(subscription_id)
    assert notifier.sent == []
