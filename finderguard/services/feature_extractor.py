"""
Feature extraction for matching.
Derives comparable attributes from the public fields of an item report. Never
looks at private details: features end up in logs and in prompts sent to a
third-party model.
"""

import re
from dataclasses import dataclass
from datetime import datetime

from finderguard.core.clock import ensure_utc
from finderguard.schemas.item import ItemPublic

COLOR_VOCABULARY = (
    "red", "blue", "green", "black", "white", "yellow", "orange", "purple",
    "pink", "brown", "gray", "grey", "silver", "gold", "beige", "navy",
    "maroon", "teal", "cyan", "magenta",
)

BRAND_VOCABULARY = (
    "apple", "iphone", "samsung", "galaxy", "google", "pixel", "huawei",
    "xiaomi", "oppo", "vivo", "oneplus", "sony", "lg", "nokia", "motorola",
    "dell", "hp", "lenovo", "asus", "acer", "microsoft", "surface", "macbook",
    "ipad", "airpods", "kindle", "fitbit", "garmin", "rolex", "casio", "seiko",
    "nike", "adidas", "puma", "gucci", "louis vuitton", "chanel", "prada",
    "coach", "fossil", "rayban", "oakley",
)

_COLOR_PATTERN = re.compile(r"\b(" + "|".join(COLOR_VOCABULARY) + r")\b", re.IGNORECASE)
_BRAND_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(b) for b in BRAND_VOCABULARY) + r")\b", re.IGNORECASE
)

MIN_KEYWORD_LENGTH = 4


@dataclass(frozen=True)
class ItemFeatures:
    category: str
    color_tokens: frozenset[str]
    brand_token: str
    keyword_set: frozenset[str]
    created_at: datetime


def extract_colors(text: str) -> set[str]:
    return {m.lower() for m in _COLOR_PATTERN.findall(text or "")}


def extract_brand(text: str) -> str:
    """First vocabulary brand mentioned in text, or empty string."""
    match = _BRAND_PATTERN.search(text or "")
    return match.group(1).lower() if match else ""


def extract_keywords(text: str) -> set[str]:
    return {w for w in (text or "").lower().split() if len(w) >= MIN_KEYWORD_LENGTH}


def extract_features(item: ItemPublic) -> ItemFeatures:
    """Declared tokens take part alongside whatever the description mentions."""
    declared_colors = {c.strip().lower() for c in item.color_tokens if c and c.strip()}
    brand = (item.brand_token or "").strip().lower() or extract_brand(item.description)
    return ItemFeatures(
        category=item.category.strip().lower(),
        color_tokens=frozenset(declared_colors | extract_colors(item.description)),
        brand_token=brand,
        keyword_set=frozenset(extract_keywords(item.description)),
        created_at=ensure_utc(item.created_at),
    )
