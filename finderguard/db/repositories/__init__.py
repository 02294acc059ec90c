# Repository pattern: abstract data access (SOLID - Dependency Inversion)

from finderguard.db.repositories.item_repository import ItemRepository
from finderguard.db.repositories.match_repository import MatchRepository
from finderguard.db.repositories.user_repository import UserRepository

__all__ = ["UserRepository", "ItemRepository", "MatchRepository"]
