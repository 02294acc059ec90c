"""Shared vocabularies for items, matches and exchanges."""

from enum import Enum


class ItemKind(str, Enum):
    LOST = "lost"
    FOUND = "found"

    @property
    def opposite(self) -> "ItemKind":
        return ItemKind.FOUND if self is ItemKind.LOST else ItemKind.LOST


class ItemStatus(str, Enum):
    OPEN = "open"
    MATCHED = "matched"
    COMPLETED = "completed"


class MatchStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


class ExchangeStatus(str, Enum):
    NONE = "none"
    FOUNDER_CONFIRMED = "founder_confirmed"
    # Kept so older records still load; nothing transitions into it.
    OWNER_CONFIRMED = "owner_confirmed"
    COMPLETED = "completed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (ExchangeStatus.COMPLETED, ExchangeStatus.EXPIRED)

