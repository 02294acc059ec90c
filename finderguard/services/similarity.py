"""
Deterministic similarity scoring for a (lost, found) pair.

Additive rubric, capped at 100:
  category match    30
  color overlap     20  (10 per shared color)
  brand match       20
  keyword overlap   20  (Jaccard-scaled)
  recency           10  (linear decay over 7 days)

Used as the fallback when the semantic matcher is unavailable and as the
baseline any model-produced confidence is sanity-checked against.
"""

from decimal import ROUND_HALF_UP, Decimal

from finderguard.services.feature_extractor import ItemFeatures

CATEGORY_POINTS = 30
COLOR_POINTS_PER_TOKEN = 10
COLOR_POINTS_MAX = 20
BRAND_POINTS = 20
KEYWORD_POINTS = 20
RECENCY_POINTS = 10
RECENCY_WINDOW_DAYS = 7
MAX_SCORE = 100

_SECONDS_PER_DAY = 86400


def _round_half_up(value: float) -> int:
    return int(Decimal(repr(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def category_points(a: ItemFeatures, b: ItemFeatures) -> int:
    return CATEGORY_POINTS if a.category and a.category == b.category else 0


def color_points(a: ItemFeatures, b: ItemFeatures) -> int:
    return min(COLOR_POINTS_MAX, COLOR_POINTS_PER_TOKEN * len(a.color_tokens & b.color_tokens))


def brand_points(a: ItemFeatures, b: ItemFeatures) -> int:
    if a.brand_token and b.brand_token and a.brand_token == b.brand_token:
        return BRAND_POINTS
    return 0


def keyword_points(a: ItemFeatures, b: ItemFeatures) -> int:
    shared = len(a.keyword_set & b.keyword_set)
    union = len(a.keyword_set | b.keyword_set)
    return _round_half_up(KEYWORD_POINTS * shared / max(union, 1))


def recency_points(a: ItemFeatures, b: ItemFeatures) -> int:
    days_apart = abs((a.created_at - b.created_at).total_seconds()) / _SECONDS_PER_DAY
    return _round_half_up(
        RECENCY_POINTS * (1 - min(days_apart, RECENCY_WINDOW_DAYS) / RECENCY_WINDOW_DAYS)
    )


def score(a: ItemFeatures, b: ItemFeatures) -> int:
    """Confidence in [0, 100] that a and b describe the same physical item. Symmetric."""
    total = (
        category_points(a, b)
        + color_points(a, b)
        + brand_points(a, b)
        + keyword_points(a, b)
        + recency_points(a, b)
    )
    return max(0, min(MAX_SCORE, total))


def clamp_confidence(value: float) -> int:
    """Bring an external confidence into the rubric's integer range."""
    return max(0, min(MAX_SCORE, _round_half_up(float(value))))
