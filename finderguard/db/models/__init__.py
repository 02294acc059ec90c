from finderguard.db.models.user import User
from finderguard.db.models.item import Item
from finderguard.db.models.match import Match

__all__ = ["User", "Item", "Match"]
