"""
BDD step definitions for the handover feature (pytest-bdd).
Steps drive the pure exchange state machine with explicit timestamps.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pytest_bdd import given, parsers, scenarios, then, when

from finderguard.schemas.enums import ExchangeStatus, MatchStatus
from finderguard.services.errors import ServiceError
from finderguard.services.exchange_state import ExchangeEvent, ExchangeSnapshot, transition

scenarios("../features/exchange.feature")

T0 = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def exchange():
    """Current snapshot plus the error raised by the last step, if any."""
    return {}


def _apply(exchange, event, actor_id, seconds):
    try:
        exchange["state"] = transition(
            exchange["state"],
            event,
            actor_id=actor_id,
            now=T0 + timedelta(seconds=seconds),
        )
        exchange["error"] = None
    except ServiceError as exc:
        exchange["error"] = exc


@given(parsers.parse("an accepted match between finder {founder:d} and owner {owner:d}"))
def accepted_match(exchange, founder, owner):
    exchange["state"] = ExchangeSnapshot(MatchStatus.ACCEPTED, ExchangeStatus.NONE, founder, owner)


@when(parsers.parse("the finder confirms the handover at second {seconds:d}"))
def finder_confirms(exchange, seconds):
    _apply(exchange, ExchangeEvent.FOUNDER_CONFIRM, exchange["state"].founder_id, seconds)


@when(parsers.parse("the owner confirms receipt at second {seconds:d}"))
def owner_confirms(exchange, seconds):
    _apply(exchange, ExchangeEvent.OWNER_CONFIRM, exchange["state"].owner_id, seconds)


@when(parsers.parse("the timer fires at second {seconds:d}"))
def timer_fires(exchange, seconds):
    _apply(exchange, ExchangeEvent.EXPIRE, None, seconds)


@then(parsers.parse('the exchange status is "{status}"'))
def exchange_status_is(exchange, status):
    assert exchange["state"].exchange_status == ExchangeStatus(status)


@then(parsers.parse('the match status is "{status}"'))
def match_status_is(exchange, status):
    assert exchange["state"].match_status == MatchStatus(status)


@then(parsers.parse('the last action is rejected with "{reason}"'))
def rejected_with(exchange, reason):
    assert exchange["error"] is not None
    assert exchange["error"].reason == reason
