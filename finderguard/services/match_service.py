"""
Match service - runs the ranker for a new report, persists matches, and manages
the accept/reject step that precedes a handover.
"""

import logging

from finderguard.core.metrics import MATCHES_CREATED
from finderguard.db.models.item import Item
from finderguard.db.models.match import Match
from finderguard.db.repositories.item_repository import ItemRepository
from finderguard.db.repositories.match_repository import MatchRepository
from finderguard.schemas.enums import ExchangeStatus, ItemKind, MatchStatus
from finderguard.schemas.match import MatchDetailResponse, MatchResponse
from finderguard.services.errors import ForbiddenError, InvalidTransitionError, NotFoundError
from finderguard.services.item_service import item_to_public, item_to_subject
from finderguard.services.match_ranker import MatchRanker, RankedCandidate
from finderguard.services.notifier import Notifier

logger = logging.getLogger(__name__)


def _match_for(subject: Item, ranked: RankedCandidate) -> Match:
    if subject.kind == ItemKind.LOST:
        lost_item_id, lost_user_id = subject.id, subject.owner_id
        found_item_id, found_user_id = ranked.item_id, ranked.owner_id
    else:
        lost_item_id, lost_user_id = ranked.item_id, ranked.owner_id
        found_item_id, found_user_id = subject.id, subject.owner_id
    return Match(
        lost_item_id=lost_item_id,
        found_item_id=found_item_id,
        lost_user_id=lost_user_id,
        found_user_id=found_user_id,
        confidence=ranked.confidence,
        reason=ranked.reason,
        status=MatchStatus.PENDING,
        exchange_status=ExchangeStatus.NONE,
        exchange_confirmed_by=[],
    )


class MatchService:
    def __init__(
        self,
        item_repo: ItemRepository,
        match_repo: MatchRepository,
        ranker: MatchRanker,
        notifier: Notifier,
    ):
        self.item_repo = item_repo
        self.match_repo = match_repo
        self.ranker = ranker
        self.notifier = notifier

    async def find_matches(self, item: Item) -> list[Match]:
        """
        Rank item against the open pool of the opposite kind and store every
        candidate above the threshold. A failed ranking pass yields no matches.
        """
        pool = await self.item_repo.list_open_by_kind_and_category(item.kind.opposite)
        try:
            ranked = await self.ranker.rank(
                item_to_subject(item), [item_to_public(c) for c in pool]
            )
        except Exception:
            logger.exception("ranking failed for item id=%s", item.id)
            return []

        created = []
        for candidate in ranked:
            match = await self.match_repo.add(_match_for(item, candidate))
            created.append(match)
            self.notifier.notify(
                "match.created",
                {
                    "match_id": match.id,
                    "confidence": match.confidence,
                    "user_ids": [match.lost_user_id, match.found_user_id],
                },
            )
        if created:
            MATCHES_CREATED.inc(len(created))
        return created

    async def list_for_user(self, user_id: int) -> list[MatchDetailResponse]:
        matches = await self.match_repo.list_by_user(user_id)
        ids = [m.lost_item_id for m in matches] + [m.found_item_id for m in matches]
        items = await self.item_repo.get_many_by_ids(ids)
        return [self._detail(m, user_id, items) for m in matches]

    async def get_for_user(self, match_id: int, user_id: int) -> MatchDetailResponse:
        match = await self._load_for_participant(match_id, user_id)
        items = await self.item_repo.get_many_by_ids([match.lost_item_id, match.found_item_id])
        return self._detail(match, user_id, items)

    async def accept(self, match_id: int, user_id: int) -> MatchResponse:
        """Either party opens the chat for a pending match."""
        return await self._decide(match_id, user_id, MatchStatus.ACCEPTED)

    async def reject(self, match_id: int, user_id: int) -> MatchResponse:
        return await self._decide(match_id, user_id, MatchStatus.REJECTED)

    async def _decide(self, match_id: int, user_id: int, status: MatchStatus) -> MatchResponse:
        match = await self._load_for_participant(match_id, user_id)
        if match.status != MatchStatus.PENDING:
            raise InvalidTransitionError(f"match is already {match.status.value}")
        match = await self.match_repo.update(match, {"status": status})
        logger.info("match id=%s %s by user id=%s", match.id, status.value, user_id)
        return MatchResponse.model_validate(match)

    async def _load_for_participant(self, match_id: int, user_id: int) -> Match:
        match = await self.match_repo.get_by_id(match_id)
        if match is None:
            raise NotFoundError("match not found")
        if user_id not in (match.lost_user_id, match.found_user_id):
            raise ForbiddenError("not a participant in this match")
        return match

    @staticmethod
    def _detail(match: Match, user_id: int, items: dict[int, Item]) -> MatchDetailResponse:
        lost = items.get(match.lost_item_id)
        found = items.get(match.found_item_id)
        return MatchDetailResponse(
            **MatchResponse.model_validate(match).model_dump(),
            lost_item=item_to_public(lost) if lost else None,
            found_item=item_to_public(found) if found else None,
            role="founder" if user_id == match.found_user_id else "owner",
        )
