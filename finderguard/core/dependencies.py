"""
FastAPI dependencies - injection for caller identity, clock and services (SOLID: Dependency Inversion).
Challenge: Reusable auth, consistent error responses, swappable collaborators in tests.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from finderguard.config import (
    ExchangeConfig,
    MatchingConfig,
    NotificationConfig,
    get_settings,
)
from finderguard.core.clock import Clock, SystemClock
from finderguard.db.repositories import ItemRepository, MatchRepository, UserRepository
from finderguard.db.session import DbSession
from finderguard.core.security import profile_id_from_token
from finderguard.queue.tasks import CeleryExpiryScheduler, celery_dispatch
from finderguard.services.exchange_service import ExchangeService, ExpiryScheduler
from finderguard.services.item_service import ItemService
from finderguard.services.match_ranker import MatchRanker
from finderguard.services.match_service import MatchService
from finderguard.services.notifier import Notifier
from finderguard.services.semantic_matcher import SemanticMatcher, get_semantic_matcher

security = HTTPBearer(auto_error=False)


def _subject(credentials: HTTPAuthorizationCredentials | None) -> int | None:
    if not credentials:
        return None
    return profile_id_from_token(credentials.credentials)


async def get_token_subject(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> int:
    """Profile id from a valid bearer token; the profile itself may not exist yet."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    subject = _subject(credentials)
    if subject is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return subject


async def get_current_user_id(
    session: DbSession,
    subject: Annotated[int, Depends(get_token_subject)],
) -> int:
    """Resolve JWT to an active profile id. Raises 401 if missing or invalid."""
    repo = UserRepository(session)
    user = await repo.get_by_id(subject)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return user.id


# Optional auth: for routes that behave differently when logged in
async def get_optional_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> int | None:
    """Return user id if valid token present, else None."""
    return _subject(credentials)


CurrentUserId = Annotated[int, Depends(get_current_user_id)]
OptionalUserId = Annotated[int | None, Depends(get_optional_user_id)]


def get_clock() -> Clock:
    return SystemClock()


def get_expiry_scheduler() -> ExpiryScheduler:
    return CeleryExpiryScheduler()


def get_notifier() -> Notifier:
    return Notifier(NotificationConfig.from_settings(get_settings()), celery_dispatch)


def get_matcher() -> SemanticMatcher | None:
    return get_semantic_matcher(get_settings())


def get_item_service(session: DbSession, clock: Annotated[Clock, Depends(get_clock)]) -> ItemService:
    """Factory for service with repository injection (Dependency Inversion)."""
    return ItemService(ItemRepository(session), clock)


def get_match_service(
    session: DbSession,
    notifier: Annotated[Notifier, Depends(get_notifier)],
    matcher: Annotated[SemanticMatcher | None, Depends(get_matcher)],
) -> MatchService:
    ranker = MatchRanker(MatchingConfig.from_settings(get_settings()), matcher)
    return MatchService(ItemRepository(session), MatchRepository(session), ranker, notifier)


def get_exchange_service(
    session: DbSession,
    clock: Annotated[Clock, Depends(get_clock)],
    scheduler: Annotated[ExpiryScheduler, Depends(get_expiry_scheduler)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> ExchangeService:
    return ExchangeService(
        MatchRepository(session),
        ItemRepository(session),
        UserRepository(session),
        clock,
        ExchangeConfig.from_settings(get_settings()),
        scheduler,
        notifier,
    )


ItemServiceDep = Annotated[ItemService, Depends(get_item_service)]
MatchServiceDep = Annotated[MatchService, Depends(get_match_service)]
ExchangeServiceDep = Annotated[ExchangeService, Depends(get_exchange_service)]
