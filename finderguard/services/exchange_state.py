"""
Exchange state machine - pure transition rules for a match's physical handover.

    none --founder_confirm--> founder_confirmed --owner_confirm--> completed
                                                 --expire---------> expired

The handover is time-boxed: the owner may confirm up to and including the
deadline (start + timeout); expiry is only valid strictly after it. At any
instant exactly one of the two exits is allowed. Persistence and side effects
live in ExchangeService; this module only decides.
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum

from finderguard.core.clock import ensure_utc
from finderguard.schemas.enums import ExchangeStatus, MatchStatus
from finderguard.services.errors import (
    ExchangeCompletedError,
    ExchangeExpiredError,
    ExchangeNotDueError,
    ForbiddenError,
    InvalidTransitionError,
)

EXCHANGE_TIMEOUT_SECONDS = 300

EXPIRED_MESSAGE = "cannot confirm - exchange already expired"
COMPLETED_MESSAGE = "cannot confirm - exchange already completed"


class ExchangeEvent(str, Enum):
    FOUNDER_CONFIRM = "founder_confirm"
    OWNER_CONFIRM = "owner_confirm"
    EXPIRE = "expire"


@dataclass(frozen=True)
class ExchangeSnapshot:
    match_status: MatchStatus
    exchange_status: ExchangeStatus
    founder_id: int
    owner_id: int
    start_time: datetime | None = None
    confirmed_by: tuple[int, ...] = ()


def deadline(snapshot: ExchangeSnapshot, timeout_seconds: int) -> datetime | None:
    if snapshot.start_time is None:
        return None
    return ensure_utc(snapshot.start_time) + timedelta(seconds=timeout_seconds)


def is_overdue(snapshot: ExchangeSnapshot, now: datetime, timeout_seconds: int) -> bool:
    """True once the handover window has closed without a confirmation."""
    if snapshot.exchange_status != ExchangeStatus.FOUNDER_CONFIRMED:
        return False
    end = deadline(snapshot, timeout_seconds)
    return end is not None and ensure_utc(now) > end


def remaining_seconds(snapshot: ExchangeSnapshot, now: datetime, timeout_seconds: int) -> int:
    if snapshot.exchange_status != ExchangeStatus.FOUNDER_CONFIRMED:
        return 0
    end = deadline(snapshot, timeout_seconds)
    if end is None:
        return 0
    return max(0, math.ceil((end - ensure_utc(now)).total_seconds()))


def terminal_error(status: ExchangeStatus) -> InvalidTransitionError:
    if status == ExchangeStatus.EXPIRED:
        return ExchangeExpiredError(EXPIRED_MESSAGE)
    return ExchangeCompletedError(COMPLETED_MESSAGE)


def transition(
    snapshot: ExchangeSnapshot,
    event: ExchangeEvent,
    *,
    actor_id: int | None,
    now: datetime,
    timeout_seconds: int = EXCHANGE_TIMEOUT_SECONDS,
) -> ExchangeSnapshot:
    """Return the state after event, or raise why it is not allowed."""
    if snapshot.exchange_status.is_terminal:
        raise terminal_error(snapshot.exchange_status)

    if event == ExchangeEvent.FOUNDER_CONFIRM:
        if actor_id != snapshot.founder_id:
            raise ForbiddenError("only the finder can start the handover")
        if snapshot.exchange_status != ExchangeStatus.NONE:
            raise InvalidTransitionError("handover already started")
        if snapshot.match_status != MatchStatus.ACCEPTED:
            raise InvalidTransitionError("match must be accepted before a handover")
        return replace(
            snapshot,
            exchange_status=ExchangeStatus.FOUNDER_CONFIRMED,
            start_time=ensure_utc(now),
            confirmed_by=(snapshot.founder_id,),
        )

    if event == ExchangeEvent.OWNER_CONFIRM:
        if actor_id != snapshot.owner_id:
            raise ForbiddenError("only the owner can confirm receipt")
        if snapshot.exchange_status != ExchangeStatus.FOUNDER_CONFIRMED:
            raise InvalidTransitionError("the finder has not handed the item over yet")
        if is_overdue(snapshot, now, timeout_seconds):
            raise ExchangeExpiredError(EXPIRED_MESSAGE)
        return replace(
            snapshot,
            match_status=MatchStatus.COMPLETED,
            exchange_status=ExchangeStatus.COMPLETED,
            confirmed_by=snapshot.confirmed_by + (snapshot.owner_id,),
        )

    if event == ExchangeEvent.EXPIRE:
        if snapshot.exchange_status != ExchangeStatus.FOUNDER_CONFIRMED:
            raise InvalidTransitionError("no handover in progress")
        if not is_overdue(snapshot, now, timeout_seconds):
            raise ExchangeNotDueError("handover window still open")
        # match_status untouched: expiry only closes the handover attempt
        return replace(snapshot, exchange_status=ExchangeStatus.EXPIRED)

    raise InvalidTransitionError(f"unknown exchange event {event!r}")
