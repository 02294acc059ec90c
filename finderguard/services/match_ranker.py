"""
Match ranker - scores a newly reported item against the open pool of the opposite kind.
Stateless: safe to run concurrently for many new items.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime

from finderguard.config import MatchingConfig
from finderguard.core.clock import ensure_utc
from finderguard.core.metrics import SEMANTIC_FALLBACKS
from finderguard.schemas.enums import ItemStatus
from finderguard.schemas.item import ItemPublic, Location, MatchSubject
from finderguard.services.feature_extractor import extract_features
from finderguard.services.semantic_matcher import (
    SemanticFailure,
    SemanticMatcher,
    SemanticMatches,
)
from finderguard.services.similarity import clamp_confidence, score

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class RankedCandidate:
    item_id: int
    owner_id: int
    confidence: int
    created_at: datetime
    source: str  # "semantic" or "rubric"
    reason: str | None = None


def distance_km(a: Location, b: Location) -> float:
    """Great-circle distance (haversine)."""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


class MatchRanker:
    """Deterministic rubric by default; semantic matcher first when one is configured."""

    def __init__(self, config: MatchingConfig, semantic_matcher: SemanticMatcher | None = None):
        self.config = config
        self.semantic_matcher = semantic_matcher

    def select_candidates(self, subject: ItemPublic, pool: list[ItemPublic]) -> list[ItemPublic]:
        """Open items of the opposite kind, same category if any exist, else all of them."""
        eligible = [
            c
            for c in pool
            if c.status == ItemStatus.OPEN
            and c.kind == subject.kind.opposite
            and c.owner_id != subject.owner_id
            and c.id != subject.id
        ]
        if not self.config.show_global and subject.location is not None:
            eligible = [
                c
                for c in eligible
                if c.location is None
                or distance_km(subject.location, c.location) <= self.config.search_radius_km
            ]
        category = subject.category.strip().lower()
        same_category = [c for c in eligible if c.category.strip().lower() == category]
        return same_category or eligible

    async def rank(self, subject: MatchSubject, pool: list[ItemPublic]) -> list[RankedCandidate]:
        """Candidates above the threshold, best first; ties go to the most recent report."""
        candidates = self.select_candidates(subject, pool)
        if not candidates:
            logger.info("no candidates for item id=%s kind=%s", subject.id, subject.kind.value)
            return []

        ranked = None
        if self.semantic_matcher is not None:
            ranked = await self._rank_semantic(subject, candidates)
        if ranked is None:
            ranked = self._rank_rubric(subject, candidates)

        kept = [r for r in ranked if r.confidence > self.config.threshold]
        kept.sort(key=lambda r: (-r.confidence, -r.created_at.timestamp(), -r.item_id))
        logger.info(
            "ranked item id=%s: %d candidates, %d above threshold",
            subject.id,
            len(candidates),
            len(kept),
        )
        return kept

    def _rank_rubric(self, subject: ItemPublic, candidates: list[ItemPublic]) -> list[RankedCandidate]:
        subject_features = extract_features(subject)
        return [
            RankedCandidate(
                item_id=c.id,
                owner_id=c.owner_id,
                confidence=score(subject_features, extract_features(c)),
                created_at=ensure_utc(c.created_at),
                source="rubric",
            )
            for c in candidates
        ]

    async def _rank_semantic(
        self, subject: MatchSubject, candidates: list[ItemPublic]
    ) -> list[RankedCandidate] | None:
        """None means fall back to the rubric."""
        try:
            result = await asyncio.wait_for(
                self.semantic_matcher.rank(subject, candidates),
                timeout=self.config.semantic_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "semantic matcher timed out after %.1fs; using rubric",
                self.config.semantic_timeout_seconds,
            )
            SEMANTIC_FALLBACKS.labels(reason="timeout").inc()
            return None
        except Exception as exc:
            logger.warning("semantic matcher failed: %s; using rubric", exc)
            SEMANTIC_FALLBACKS.labels(reason="error").inc()
            return None

        if not isinstance(result, SemanticMatches):
            reason = result.reason if isinstance(result, SemanticFailure) else "unexpected result type"
            logger.warning("semantic matcher unusable: %s; using rubric", reason)
            SEMANTIC_FALLBACKS.labels(reason="invalid").inc()
            return None

        by_id = {c.id: c for c in candidates}
        best: dict[int, RankedCandidate] = {}
        for s in result.matches:
            candidate = by_id.get(s.id)
            if candidate is None:
                continue
            ranked = RankedCandidate(
                item_id=candidate.id,
                owner_id=candidate.owner_id,
                confidence=clamp_confidence(s.confidence),
                created_at=ensure_utc(candidate.created_at),
                source="semantic",
                reason=s.reason[:500] or None,
            )
            if candidate.id not in best or ranked.confidence > best[candidate.id].confidence:
                best[candidate.id] = ranked
        return list(best.values())
