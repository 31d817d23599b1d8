"""Persistence of captured items."""

from snapmemo.storage.item import Item
from snapmemo.storage.repository import FileItemRepository, ItemRepository

__all__ = ["Item", "ItemRepository", "FileItemRepository"]
