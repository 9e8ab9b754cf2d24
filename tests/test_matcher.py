from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from conftest import BUCHA, FOOD, HOUSING, IRPIN, KYIEVO, KYIV, MEDS, T0, VILSHANKA, VORZEL, FakeClock, register
from core.config import NotificationConfig
from core.errors import NotFound
from core.helps import HelpService
from core.matcher import SubscriptionMatcher, build_notifications, distinct_by_creator
from core.subscriptions import SubscriptionService


def _services(storage, clock: FakeClock):
    return HelpService(storage, clock), SubscriptionService(storage, clock), SubscriptionMatcher(storage)


def test_one_notification_per_subscriber_across_categories(storage, clock: FakeClock) -> None:
    helps, subscriptions, matcher = _services(storage, clock)
    volunteer = register(storage, 1)
    seeker = register(storage, 2, language="UA")

    async def scenario():
        food = await subscriptions.create(seeker.id, FOOD, VORZEL)
        clock.advance(minutes=1)
        await subscriptions.create(seeker.id, MEDS, VORZEL)
        help_id = await helps.create(volunteer.id, [FOOD, MEDS], VILSHANKA, "soup and pills")
        posting = await helps.get_by_id(help_id)
        return food, posting, await matcher.subscriptions_for(posting)

    food, posting, matched = asyncio.run(scenario())

    assert [subscription.id for subscription in matched] == [food]
    notifications = build_notifications(posting, matched, NotificationConfig(headers={"UA": "Nova dopomoha"}))
    assert len(notifications) == 1
    assert notifications[0].chat_id == seeker.chat_id
    assert notifications[0].header == "Nova dopomoha"
    assert notifications[0].category_names == ("Yizha", "Liky")


def test_city_does_not_match_village_elsewhere(storage, clock: FakeClock) -> None:
    helps, subscriptions, matcher = _services(storage, clock)
    volunteer = register(storage, 1)
    seeker = register(storage, 2)

    async def scenario():
        await subscriptions.create(seeker.id, FOOD, KYIEVO)
        posting = await helps.get_by_id(await helps.create(volunteer.id, [FOOD], KYIV, "bread"))
        return await matcher.subscriptions_for(posting)

    assert asyncio.run(scenario()) == []


def test_city_siblings_do_not_roll_up(storage, clock: FakeClock) -> None:
    helps, subscriptions, matcher = _services(storage, clock)
    volunteer = register(storage, 1)
    seeker = register(storage, 2)

    async def scenario():
        await subscriptions.create(seeker.id, FOOD, IRPIN)
        posting = await helps.get_by_id(await helps.create(volunteer.id, [FOOD], BUCHA, "bread"))
        return await matcher.subscriptions_for(posting)

    assert asyncio.run(scenario()) == []


def test_category_must_be_shared(storage, clock: FakeClock) -> None:
    helps, subscriptions, matcher = _services(storage, clock)
    volunteer = register(storage, 1)
    seeker = register(storage, 2)

    async def scenario():
        await subscriptions.create(seeker.id, HOUSING, VILSHANKA)
        posting = await helps.get_by_id(await helps.create(volunteer.id, [FOOD], VILSHANKA, "bread"))
        return await matcher.subscriptions_for(posting)

    assert asyncio.run(scenario()) == []


def test_deleted_subscriptions_are_inert(storage, clock: FakeClock) -> None:
    helps, subscriptions, matcher = _services(storage, clock)
    volunteer = register(storage, 1)
    seeker = register(storage, 2)
    other = register(storage, 3)

    async def scenario():
        dropped = await subscriptions.create(seeker.id, FOOD, VORZEL)
        kept = await subscriptions.create(other.id, FOOD, VILSHANKA)
        await subscriptions.delete(dropped)
        await subscriptions.delete(dropped)
        posting = await helps.get_by_id(await helps.create(volunteer.id, [FOOD], VILSHANKA, "bread"))
        return kept, await matcher.subscriptions_for(posting)

    kept, matched = asyncio.run(scenario())

    assert [subscription.id for subscription in matched] == [kept]
    assert asyncio.run(subscriptions.count_by_user(seeker.id)) == 0


def test_postings_for_subscription(storage, clock: FakeClock) -> None:
    helps, subscriptions, matcher = _services(storage, clock)
    volunteer = register(storage, 1)
    seeker = register(storage, 2)

    async def scenario():
        first = await helps.create(volunteer.id, [FOOD], VILSHANKA, "bread")
        clock.advance(hours=1)
        second = await helps.create(volunteer.id, [MEDS, FOOD], VORZEL, "pills and bread")
        gone = await helps.create(volunteer.id, [FOOD], VORZEL, "gone")
        await helps.delete(gone)
        await helps.create(volunteer.id, [FOOD], BUCHA, "city bread")
        subscription_id = await subscriptions.create(seeker.id, FOOD, VORZEL)
        postings = await matcher.postings_for(subscription_id)
        return [first, second], [posting.id for posting in postings]

    expected, found = asyncio.run(scenario())

    assert found == expected


def test_postings_for_missing_subscription(storage, clock: FakeClock) -> None:
    helps, subscriptions, matcher = _services(storage, clock)
    seeker = register(storage, 2)

    async def scenario():
        subscription_id = await subscriptions.create(seeker.id, FOOD, VORZEL)
        await subscriptions.delete(subscription_id)
        await matcher.postings_for(subscription_id)

    with pytest.raises(NotFound):
        asyncio.run(scenario())
    with pytest.raises(NotFound):
        asyncio.run(matcher.postings_for(uuid4()))


def test_exists_by_id(storage, clock: FakeClock) -> None:
    _, subscriptions, matcher = _services(storage, clock)
    seeker = register(storage, 2)
    subscription_id = asyncio.run(subscriptions.create(seeker.id, FOOD, VORZEL))

    assert asyncio.run(matcher.exists_by_id(subscription_id)) is True
    assert asyncio.run(matcher.exists_by_id(str(uuid4()))) is False

    asyncio.run(subscriptions.delete(subscription_id))
    assert asyncio.run(matcher.exists_by_id(subscription_id)) is False


def test_deleted_posting_matches_nothing(storage, clock: FakeClock) -> None:
    helps, subscriptions, matcher = _services(storage, clock)
    volunteer = register(storage, 1)
    seeker = register(storage, 2)

    async def scenario():
        await subscriptions.create(seeker.id, FOOD, VILSHANKA)
        help_id = await helps.create(volunteer.id, [FOOD], VILSHANKA, "bread")
        posting = await helps.get_by_id(help_id)
        await helps.delete(help_id)
        return await matcher.subscriptions_for(storage.select_help(posting.id))

    assert asyncio.run(scenario()) == []


def test_distinct_by_creator_keeps_earliest(storage, clock: FakeClock) -> None:
    _, subscriptions, _ = _services(storage, clock)
    seeker = register(storage, 2)
    other = register(storage, 3)

    async def scenario():
        first = await subscriptions.create(seeker.id, FOOD, VORZEL)
        clock.advance(seconds=1)
        await subscriptions.create(seeker.id, MEDS, VORZEL)
        clock.advance(seconds=1)
        third = await subscriptions.create(other.id, FOOD, VORZEL)
        return first, third

    first, third = asyncio.run(scenario())
    listed = storage.select_subscriptions_by_localities_categories([VORZEL], [FOOD, MEDS])

    assert [subscription.id for subscription in distinct_by_creator(listed)] == [first, third]


def test_subscriptions_listed_in_creation_order(storage, clock: FakeClock) -> None:
    _, subscriptions, _ = _services(storage, clock)
    seeker = register(storage, 2)

    async def scenario():
        ids = []
        for category in (HOUSING, FOOD):
            ids.append(await subscriptions.create(seeker.id, category, VORZEL))
            clock.advance(minutes=1)
        return ids, await subscriptions.list_by_user(seeker.id)

    ids, listed = asyncio.run(scenario())

    assert [subscription.id for subscription in listed] == ids
    assert listed[0].created_at == T0
