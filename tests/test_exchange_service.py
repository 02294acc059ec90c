"""
Exchange service tests - persisted handover, timer races and trust side effects.
"""

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finderguard.config import ExchangeConfig
from finderguard.db.repositories import ItemRepository, MatchRepository, UserRepository
from finderguard.schemas.enums import ExchangeStatus, ItemKind, ItemStatus, MatchStatus
from finderguard.services.errors import (
    ExchangeCompletedError,
    ExchangeExpiredError,
    ForbiddenError,
    InvalidTransitionError,
    StaleMatchError,
)
from finderguard.services.exchange_service import ExchangeService
from tests.conftest import FrozenClock, make_item, make_match, make_user


@pytest_asyncio.fixture
async def handover(session, founder, owner):
    lost = await make_item(session, owner, ItemKind.LOST)
    found = await make_item(session, founder, ItemKind.FOUND)
    match = await make_match(session, lost, found)
    return match, lost, found


async def reload_user(session, user_id):
    user = await UserRepository(session).get_by_id(user_id)
    await session.refresh(user)
    return user


@pytest.mark.asyncio
async def test_owner_confirms_in_time(session, exchange_service, handover, clock, scheduler, founder, owner, notifications):
    match, lost, found = handover
    await exchange_service.founder_confirm(match.id, founder.id)
    assert scheduler.scheduled == [(match.id, 301)]
    assert (await ItemRepository(session).get_by_id(lost.id)).status == ItemStatus.MATCHED

    clock.set(299)
    completed = await exchange_service.owner_confirm(match.id, owner.id)

    assert completed.exchange_status == ExchangeStatus.COMPLETED
    assert completed.status == MatchStatus.COMPLETED
    assert completed.exchange_confirmed_by == [founder.id, owner.id]
    user = await reload_user(session, founder.id)
    assert user.trust_score == 85
    assert user.reports_count == 1
    items = ItemRepository(session)
    assert await items.get_by_id(lost.id) is None
    assert await items.get_by_id(found.id) is None
    assert [e for e, _ in notifications] == ["exchange.founder_confirmed", "exchange.completed"]


@pytest.mark.asyncio
async def test_owner_may_confirm_exactly_at_deadline(exchange_service, handover, clock, founder, owner):
    match, _, _ = handover
    await exchange_service.founder_confirm(match.id, founder.id)
    clock.set(300)
    completed = await exchange_service.owner_confirm(match.id, owner.id)
    assert completed.exchange_status == ExchangeStatus.COMPLETED


@pytest.mark.asyncio
async def test_timer_expires_unconfirmed_handover(session, exchange_service, handover, clock, founder):
    match, lost, found = handover
    await exchange_service.founder_confirm(match.id, founder.id)

    clock.set(300)
    outcome = await exchange_service.expire_if_due(match.id)
    assert outcome.status == "not_due"

    clock.set(301)
    outcome = await exchange_service.expire_if_due(match.id)
    assert outcome.status == "expired"

    expired = await MatchRepository(session).get_by_id(match.id)
    assert expired.exchange_status == ExchangeStatus.EXPIRED
    assert expired.status == MatchStatus.ACCEPTED
    user = await reload_user(session, founder.id)
    assert user.trust_score == 70
    assert user.failed_exchanges == 1
    items = ItemRepository(session)
    assert (await items.get_by_id(lost.id)).status == ItemStatus.OPEN
    assert (await items.get_by_id(found.id)).status == ItemStatus.OPEN


@pytest.mark.asyncio
async def test_owner_too_late_after_timer(session, exchange_service, handover, clock, founder, owner):
    match, _, _ = handover
    await exchange_service.founder_confirm(match.id, founder.id)
    clock.set(301)
    await exchange_service.expire_if_due(match.id)

    clock.set(302)
    with pytest.raises(ExchangeExpiredError, match="expired"):
        await exchange_service.owner_confirm(match.id, owner.id)
    assert (await reload_user(session, founder.id)).trust_score == 70


@pytest.mark.asyncio
async def test_late_owner_settles_expiry_once(session, exchange_service, handover, clock, founder, owner):
    match, _, _ = handover
    await exchange_service.founder_confirm(match.id, founder.id)
    clock.set(301)

    with pytest.raises(ExchangeExpiredError):
        await exchange_service.owner_confirm(match.id, owner.id)
    with pytest.raises(ExchangeExpiredError):
        await exchange_service.owner_confirm(match.id, owner.id)
    outcome = await exchange_service.expire_if_due(match.id)

    assert outcome.status == ExchangeStatus.EXPIRED.value
    user = await reload_user(session, founder.id)
    assert user.trust_score == 70
    assert user.failed_exchanges == 1


@pytest.mark.asyncio
async def test_timer_after_completion_changes_nothing(session, exchange_service, handover, clock, founder, owner):
    match, _, _ = handover
    await exchange_service.founder_confirm(match.id, founder.id)
    clock.set(10)
    await exchange_service.owner_confirm(match.id, owner.id)

    clock.set(400)
    outcome = await exchange_service.expire_if_due(match.id)
    assert outcome.status == ExchangeStatus.COMPLETED.value
    user = await reload_user(session, founder.id)
    assert user.trust_score == 85
    assert user.failed_exchanges == 0


@pytest.mark.asyncio
async def test_state_read_expires_overdue_handover(exchange_service, handover, clock, founder, owner):
    match, _, _ = handover
    await exchange_service.founder_confirm(match.id, founder.id)
    clock.set(120)
    state = await exchange_service.get_state(match.id, owner.id)
    assert state.remaining_seconds == 180

    clock.set(500)
    state = await exchange_service.get_state(match.id, owner.id)
    assert state.exchange_status == ExchangeStatus.EXPIRED
    assert state.remaining_seconds == 0


@pytest.mark.asyncio
async def test_handover_requires_accepted_match(session, exchange_service, founder, owner):
    lost = await make_item(session, owner, ItemKind.LOST)
    found = await make_item(session, founder, ItemKind.FOUND)
    match = await make_match(session, lost, found, status=MatchStatus.PENDING)
    with pytest.raises(InvalidTransitionError):
        await exchange_service.founder_confirm(match.id, founder.id)


@pytest.mark.asyncio
async def test_roles_are_enforced(session, exchange_service, handover, founder, owner):
    match, _, _ = handover
    stranger = await make_user(session, "stranger")
    with pytest.raises(ForbiddenError):
        await exchange_service.founder_confirm(match.id, owner.id)
    with pytest.raises(ForbiddenError):
        await exchange_service.founder_confirm(match.id, stranger.id)
    await exchange_service.founder_confirm(match.id, founder.id)
    with pytest.raises(ForbiddenError):
        await exchange_service.owner_confirm(match.id, founder.id)


@pytest.mark.asyncio
async def test_completed_exchange_is_final(exchange_service, handover, clock, founder, owner):
    match, _, _ = handover
    await exchange_service.founder_confirm(match.id, founder.id)
    await exchange_service.owner_confirm(match.id, owner.id)
    with pytest.raises(ExchangeCompletedError, match="completed"):
        await exchange_service.owner_confirm(match.id, owner.id)


@pytest.mark.asyncio
async def test_sibling_match_goes_stale_after_completion(session, exchange_service, handover, founder, owner):
    match, _, found = handover
    other_owner = await make_user(session, "other-owner")
    other_lost = await make_item(session, other_owner, ItemKind.LOST)
    sibling = await make_match(session, other_lost, found)

    await exchange_service.founder_confirm(match.id, founder.id)
    await exchange_service.owner_confirm(match.id, owner.id)

    with pytest.raises(StaleMatchError):
        await exchange_service.founder_confirm(sibling.id, founder.id)


@pytest.mark.asyncio
async def test_item_cannot_join_two_handovers(session, exchange_service, handover, founder):
    match, _, found = handover
    other_owner = await make_user(session, "other-owner")
    other_lost = await make_item(session, other_owner, ItemKind.LOST)
    sibling = await make_match(session, other_lost, found)

    await exchange_service.founder_confirm(match.id, founder.id)
    with pytest.raises(InvalidTransitionError):
        await exchange_service.founder_confirm(sibling.id, founder.id)


@pytest.mark.asyncio
async def test_reschedule_pending_uses_time_left(exchange_service, handover, clock, scheduler, founder):
    match, _, _ = handover
    await exchange_service.founder_confirm(match.id, founder.id)
    scheduler.scheduled.clear()

    clock.set(100)
    assert await exchange_service.reschedule_pending() == 1
    assert scheduler.scheduled == [(match.id, 201)]


@pytest.mark.asyncio
async def test_scheduler_failure_does_not_block_handover(exchange_service, handover, founder):
    class BrokenScheduler:
        def schedule(self, match_id, delay_seconds):
            raise ConnectionError("broker down")

    exchange_service.scheduler = BrokenScheduler()
    match, _, _ = handover
    started = await exchange_service.founder_confirm(match.id, founder.id)
    assert started.exchange_status == ExchangeStatus.FOUNDER_CONFIRMED


def service_on(session, clock, scheduler, notifier) -> ExchangeService:
    """A second worker: its own session, sharing the test database."""
    return ExchangeService(
        MatchRepository(session),
        ItemRepository(session),
        UserRepository(session),
        clock,
        ExchangeConfig(timeout_seconds=300),
        scheduler,
        notifier,
    )


def other_session(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)()


@pytest.mark.asyncio
async def test_trust_update_locks_profile_row(session, exchange_service, handover, clock, founder, owner):
    match, _, _ = handover
    await exchange_service.founder_confirm(match.id, founder.id)
    clock.set(10)

    locked = []

    @event.listens_for(session.sync_session, "do_orm_execute")
    def capture(orm_execute_state):
        sql = str(orm_execute_state.statement.compile(dialect=postgresql.dialect()))
        if "FROM users" in sql and "FOR UPDATE" in sql:
            locked.append(sql)

    await exchange_service.owner_confirm(match.id, owner.id)
    event.remove(session.sync_session, "do_orm_execute", capture)

    assert len(locked) == 1


@pytest.mark.asyncio
async def test_outcomes_from_two_workers_both_reach_founder_trust(
    session, engine, exchange_service, clock, scheduler, notifier, founder, owner
):
    """Two handovers by one founder expire in different sessions; neither delta is lost."""
    first = await make_match(
        session, await make_item(session, owner, ItemKind.LOST), await make_item(session, founder, ItemKind.FOUND)
    )
    second = await make_match(
        session, await make_item(session, owner, ItemKind.LOST), await make_item(session, founder, ItemKind.FOUND)
    )
    await exchange_service.founder_confirm(first.id, founder.id)
    await exchange_service.founder_confirm(second.id, founder.id)
    clock.set(301)

    async with other_session(engine) as worker:
        # Both workers hold the profile at 80 before either outcome lands
        assert (await UserRepository(worker).get_by_id(founder.id)).trust_score == 80
        other = service_on(worker, clock, scheduler, notifier)

        assert (await exchange_service.expire_if_due(first.id)).status == "expired"
        assert (await other.expire_if_due(second.id)).status == "expired"

        user = await reload_user(session, founder.id)
        assert user.trust_score == 60
        assert user.failed_exchanges == 2


@pytest.mark.asyncio
async def test_timer_beats_owner_confirmation(
    session, engine, exchange_service, handover, scheduler, notifier, founder, owner
):
    """Owner acts on a stale view after the timer won; the compare-and-set rejects it."""
    match, _, _ = handover
    await exchange_service.founder_confirm(match.id, founder.id)
    assert (await MatchRepository(session).get_by_id(match.id)).exchange_status == ExchangeStatus.FOUNDER_CONFIRMED

    async with other_session(engine) as worker:
        timer_clock = FrozenClock()
        timer_clock.set(301)
        timer = service_on(worker, timer_clock, scheduler, notifier)
        assert (await timer.expire_if_due(match.id)).status == "expired"

        # Owner's clock still reads inside the window, so only the stored state can refuse it
        owner_clock = FrozenClock()
        owner_clock.set(300)
        late = service_on(session, owner_clock, scheduler, notifier)
        with pytest.raises(ExchangeExpiredError):
            await late.owner_confirm(match.id, owner.id)

        stored = await MatchRepository(session).get_by_id(match.id)
        assert stored.exchange_status == ExchangeStatus.EXPIRED
        assert stored.status == MatchStatus.ACCEPTED
        user = await reload_user(session, founder.id)
        assert user.trust_score == 70
        assert user.failed_exchanges == 1
        assert user.reports_count == 0


@pytest.mark.asyncio
async def test_owner_confirmation_beats_timer(
    session, engine, exchange_service, handover, clock, scheduler, notifier, founder, owner
):
    """Timer fires on a stale view after the owner won; the expiry is dropped."""
    match, _, _ = handover
    await exchange_service.founder_confirm(match.id, founder.id)

    async with other_session(engine) as worker:
        timer = service_on(worker, FrozenClock(), scheduler, notifier)
        stale = await MatchRepository(worker).get_by_id(match.id)
        assert stale.exchange_status == ExchangeStatus.FOUNDER_CONFIRMED

        clock.set(200)
        await exchange_service.owner_confirm(match.id, owner.id)

        timer.clock.set(301)
        outcome = await timer.expire_if_due(match.id)
        assert outcome.status == ExchangeStatus.COMPLETED.value
        assert stale.exchange_status == ExchangeStatus.COMPLETED

        user = await reload_user(session, founder.id)
        assert user.trust_score == 85
        assert user.failed_exchanges == 0
        assert user.reports_count == 1
