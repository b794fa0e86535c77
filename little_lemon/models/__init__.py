# Import all models here so SQLAlchemy registers them with Base.metadata
from little_lemon.models.cache_entry import CacheEntry
from little_lemon.models.menu_item import MenuItem
from little_lemon.models.preference import Preference

__all__ = [
    "CacheEntry",
    "MenuItem",
    "Preference",
]
