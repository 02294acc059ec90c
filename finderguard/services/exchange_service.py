"""
Exchange service - persists exchange transitions and their side effects.

Every transition out of a state is a compare-and-set on the stored
exchange_status, so a completion racing the expiry timer has exactly one
winner. Trust deltas are applied only after the store confirmed the winning
transition, in the same transaction.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from finderguard.cache.redis_client import cache_delete_many
from finderguard.config import ExchangeConfig
from finderguard.core.clock import Clock
from finderguard.core.metrics import EXCHANGE_TRANSITIONS
from finderguard.db.models.item import Item
from finderguard.db.models.match import Match
from finderguard.db.repositories.item_repository import ItemRepository
from finderguard.db.repositories.match_repository import MatchRepository
from finderguard.db.repositories.user_repository import UserRepository
from finderguard.schemas.enums import ExchangeStatus, ItemStatus
from finderguard.schemas.match import ExchangeStateResponse
from finderguard.services.errors import (
    ExchangeExpiredError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    StaleMatchError,
)
from finderguard.services.exchange_state import (
    EXPIRED_MESSAGE,
    ExchangeEvent,
    ExchangeSnapshot,
    deadline,
    is_overdue,
    remaining_seconds,
    terminal_error,
    transition,
)
from finderguard.services.item_service import CACHE_PREFIX
from finderguard.services.notifier import Notifier
from finderguard.services.trust_ledger import TrustProfile, apply_failure, apply_success

logger = logging.getLogger(__name__)

# Run the expiry check just past the deadline, where expiry becomes valid.
EXPIRY_GRACE_SECONDS = 1


class ExpiryScheduler(Protocol):
    def schedule(self, match_id: int, delay_seconds: float) -> None: ...


@dataclass(frozen=True)
class ExpiryOutcome:
    status: str  # "expired", "not_due", "missing" or the current exchange status
    remaining_seconds: int = 0


async def _invalidate(items: list[Item]) -> None:
    await cache_delete_many([CACHE_PREFIX + str(item.id) for item in items])


def snapshot_of(match: Match) -> ExchangeSnapshot:
    return ExchangeSnapshot(
        match_status=match.status,
        exchange_status=match.exchange_status,
        founder_id=match.found_user_id,
        owner_id=match.lost_user_id,
        start_time=match.exchange_start_time,
        confirmed_by=tuple(match.exchange_confirmed_by or ()),
    )


class ExchangeService:
    def __init__(
        self,
        match_repo: MatchRepository,
        item_repo: ItemRepository,
        user_repo: UserRepository,
        clock: Clock,
        config: ExchangeConfig,
        scheduler: ExpiryScheduler,
        notifier: Notifier,
    ):
        self.match_repo = match_repo
        self.item_repo = item_repo
        self.user_repo = user_repo
        self.clock = clock
        self.config = config
        self.scheduler = scheduler
        self.notifier = notifier

    async def get_state(self, match_id: int, user_id: int) -> ExchangeStateResponse:
        """Current exchange state; an overdue handover is expired on read."""
        match = await self._load_for_participant(match_id, user_id)
        now = self.clock.now()
        if is_overdue(snapshot_of(match), now, self.config.timeout_seconds):
            await self._expire(match)
        return self.describe(match)

    def describe(self, match: Match) -> ExchangeStateResponse:
        snapshot = snapshot_of(match)
        timeout = self.config.timeout_seconds
        return ExchangeStateResponse(
            match_id=match.id,
            match_status=match.status,
            exchange_status=match.exchange_status,
            exchange_start_time=match.exchange_start_time,
            deadline=deadline(snapshot, timeout),
            remaining_seconds=remaining_seconds(snapshot, self.clock.now(), timeout),
            exchange_confirmed_by=list(snapshot.confirmed_by),
        )

    async def founder_confirm(self, match_id: int, user_id: int) -> Match:
        """Finder says the item has been offered; starts the handover countdown."""
        match = await self._load_for_participant(match_id, user_id)
        now = self.clock.now()
        target = transition(
            snapshot_of(match),
            ExchangeEvent.FOUNDER_CONFIRM,
            actor_id=user_id,
            now=now,
            timeout_seconds=self.config.timeout_seconds,
        )
        items = await self._resolve_items(match)
        busy = [item.id for item in items if item.status != ItemStatus.OPEN]
        if busy:
            raise InvalidTransitionError("item is already part of another handover")

        won = await self.match_repo.compare_and_set_exchange(
            match,
            ExchangeStatus.NONE,
            {
                "exchange_status": target.exchange_status,
                "exchange_start_time": target.start_time,
                "exchange_confirmed_by": list(target.confirmed_by),
            },
        )
        if not won:
            raise self._lost_race(match)

        for item in items:
            await self.item_repo.update(item, {"status": ItemStatus.MATCHED})
        await _invalidate(items)
        EXCHANGE_TRANSITIONS.labels(to_status=ExchangeStatus.FOUNDER_CONFIRMED.value).inc()
        logger.info("exchange started: match id=%s founder=%s", match.id, user_id)

        self._schedule_expiry(match.id, self.config.timeout_seconds)
        self.notifier.notify(
            "exchange.founder_confirmed",
            {
                "match_id": match.id,
                "user_ids": [match.lost_user_id],
                "deadline": deadline(target, self.config.timeout_seconds).isoformat(),
            },
        )
        return match

    async def owner_confirm(self, match_id: int, user_id: int) -> Match:
        """
        Owner confirms receipt; completes the exchange and retires both items.
        A confirmation past the deadline settles the expiry and raises
        ExchangeExpiredError with that expiry flushed; callers commit before
        surfacing the error.
        """
        match = await self._load_for_participant(match_id, user_id)
        now = self.clock.now()
        snapshot = snapshot_of(match)

        if user_id == match.lost_user_id and is_overdue(snapshot, now, self.config.timeout_seconds):
            # Timer has not fired yet; settle the expiry first
            await self._expire(match)
            raise ExchangeExpiredError(EXPIRED_MESSAGE)

        target = transition(
            snapshot,
            ExchangeEvent.OWNER_CONFIRM,
            actor_id=user_id,
            now=now,
            timeout_seconds=self.config.timeout_seconds,
        )
        items = await self._resolve_items(match)

        won = await self.match_repo.compare_and_set_exchange(
            match,
            ExchangeStatus.FOUNDER_CONFIRMED,
            {
                "exchange_status": target.exchange_status,
                "status": target.match_status,
                "exchange_confirmed_by": list(target.confirmed_by),
            },
        )
        if not won:
            raise self._lost_race(match)

        for item in items:
            await self.item_repo.delete(item)
        await _invalidate(items)
        await self._apply_trust(match.found_user_id, success=True)
        EXCHANGE_TRANSITIONS.labels(to_status=ExchangeStatus.COMPLETED.value).inc()
        logger.info("exchange completed: match id=%s", match.id)

        self.notifier.notify(
            "exchange.completed",
            {"match_id": match.id, "user_ids": [match.found_user_id, match.lost_user_id]},
        )
        return match

    async def expire_if_due(self, match_id: int) -> ExpiryOutcome:
        """Timer entry point. Safe to call any number of times."""
        match = await self.match_repo.get_by_id(match_id)
        if match is None:
            return ExpiryOutcome("missing")
        if match.exchange_status != ExchangeStatus.FOUNDER_CONFIRMED:
            return ExpiryOutcome(match.exchange_status.value)
        snapshot = snapshot_of(match)
        now = self.clock.now()
        if not is_overdue(snapshot, now, self.config.timeout_seconds):
            return ExpiryOutcome("not_due", remaining_seconds(snapshot, now, self.config.timeout_seconds))
        if await self._expire(match):
            return ExpiryOutcome("expired")
        return ExpiryOutcome(match.exchange_status.value)

    async def reschedule_pending(self) -> int:
        """Re-derive countdowns for handovers in flight (timers do not survive restarts)."""
        pending = await self.match_repo.list_in_exchange_status(ExchangeStatus.FOUNDER_CONFIRMED)
        now = self.clock.now()
        for match in pending:
            self._schedule_expiry(
                match.id, remaining_seconds(snapshot_of(match), now, self.config.timeout_seconds)
            )
        if pending:
            logger.info("rescheduled %d exchange timers", len(pending))
        return len(pending)

    async def _expire(self, match: Match) -> bool:
        """Store the expiry if it is still valid. True when this call won."""
        try:
            target = transition(
                snapshot_of(match),
                ExchangeEvent.EXPIRE,
                actor_id=None,
                now=self.clock.now(),
                timeout_seconds=self.config.timeout_seconds,
            )
        except InvalidTransitionError:
            return False
        won = await self.match_repo.compare_and_set_exchange(
            match,
            ExchangeStatus.FOUNDER_CONFIRMED,
            {"exchange_status": target.exchange_status},
        )
        if not won:
            return False

        items = await self.item_repo.get_many_by_ids([match.lost_item_id, match.found_item_id])
        reopened = [item for item in items.values() if item.status == ItemStatus.MATCHED]
        for item in reopened:
            await self.item_repo.update(item, {"status": ItemStatus.OPEN})
        await _invalidate(reopened)
        await self._apply_trust(match.found_user_id, success=False)
        EXCHANGE_TRANSITIONS.labels(to_status=ExchangeStatus.EXPIRED.value).inc()
        logger.info("exchange expired: match id=%s founder=%s", match.id, match.found_user_id)

        self.notifier.notify(
            "exchange.expired",
            {"match_id": match.id, "user_ids": [match.found_user_id, match.lost_user_id]},
        )
        return True

    async def _apply_trust(self, user_id: int, *, success: bool) -> None:
        # Row lock serialises outcomes for the same founder across matches
        user = await self.user_repo.get_for_update(user_id)
        if user is None:
            logger.warning("trust update skipped: profile id=%s not found", user_id)
            return
        current = TrustProfile.model_validate(user)
        updated = apply_success(current) if success else apply_failure(current)
        await self.user_repo.update(user, updated.model_dump())

    async def _load_for_participant(self, match_id: int, user_id: int) -> Match:
        match = await self.match_repo.get_by_id(match_id)
        if match is None:
            raise NotFoundError("match not found")
        if user_id not in (match.lost_user_id, match.found_user_id):
            raise ForbiddenError("not a participant in this match")
        return match

    async def _resolve_items(self, match: Match) -> list[Item]:
        items = await self.item_repo.get_many_by_ids([match.lost_item_id, match.found_item_id])
        if len(items) < 2:
            raise StaleMatchError("item no longer available")
        return [items[match.lost_item_id], items[match.found_item_id]]

    def _lost_race(self, match: Match) -> InvalidTransitionError:
        """Error for a compare-and-set that another transition beat."""
        if match.exchange_status.is_terminal:
            return terminal_error(match.exchange_status)
        return InvalidTransitionError("exchange state changed concurrently; retry")

    def _schedule_expiry(self, match_id: int, remaining: float) -> None:
        try:
            self.scheduler.schedule(match_id, remaining + EXPIRY_GRACE_SECONDS)
        except Exception as exc:
            # Not load-bearing: expiry is also settled on read and on late confirmation.
            logger.warning("could not schedule expiry for match id=%s: %s", match_id, exc)
