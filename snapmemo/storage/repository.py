"""Storage of captured items.

The core only talks to ItemRepository. FileItemRepository keeps one
directory per item:

    <root>/<id>/image.bin
    <root>/<id>/audio.bin      (absent when the item has no memo)
    <root>/<id>/item.json      (id, timestamp, waveform)
"""

import json
import os
import re
import shutil
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import filelock

from snapmemo.config.config_loader import config
from snapmemo.storage.item import Item
from snapmemo.utils.exceptions import StorageError
from snapmemo.utils.logger import setup_logger

logger = setup_logger(__name__)

_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")

IMAGE_FILE = "image.bin"
AUDIO_FILE = "audio.bin"
METADATA_FILE = "item.json"


class ItemRepository(ABC):
    """Storage interface used by the capture flow and the memo library."""

    @abstractmethod
    def save(
        self,
        audio_data: Optional[bytes],
        waveform: Optional[List[float]],
        image_data: bytes,
    ) -> str:
        """Persist a new item and return its id."""

    @abstractmethod
    def delete(self, item_id: str) -> None:
        """Remove an item. Raises StorageError for unknown ids."""

    @abstractmethod
    def list_all(self) -> List[Item]:
        """All items, newest first."""

    @abstractmethod
    def get(self, item_id: str) -> Optional[Item]:
        """Load one item, or None if it does not exist."""

    @abstractmethod
    def update_waveform(self, item_id: str, waveform: List[float]) -> None:
        """Attach a computed summary to an existing item."""


class FileItemRepository(ItemRepository):
    """Directory-backed item storage."""

    def __init__(self, directory: Optional[str] = None) -> None:
        """Initialize the repository.

        Args:
            directory: Storage root (storage.directory from config if None).
        """
        self.base_directory = Path(
            directory or config.get("storage.directory", "captures")
        )
        self.base_directory.mkdir(parents=True, exist_ok=True)
        self._lock = filelock.FileLock(str(self.base_directory / ".lock"))
        logger.debug(f"Item storage at {self.base_directory}")

    def _item_dir(self, item_id: str) -> Path:
        if not _ID_PATTERN.match(item_id):
            raise StorageError(f"Invalid item id: {item_id!r}")
        return self.base_directory / item_id

    def _write_metadata(self, item_dir: Path, metadata: dict) -> None:
        temp_path = item_dir / f"{METADATA_FILE}.tmp"
        with open(temp_path, "w") as f:
            json.dump(metadata, f)
        os.replace(temp_path, item_dir / METADATA_FILE)

    def save(
        self,
        audio_data: Optional[bytes],
        waveform: Optional[List[float]],
        image_data: bytes,
    ) -> str:
        """Persist a new item.

        Args:
            audio_data: Encoded clip bytes, or None.
            waveform: Summary values, or None if not computed yet.
            image_data: Encoded image bytes.

        Returns:
            The new item's id.

        Raises:
            StorageError: If the item could not be written.
        """
        item_id = uuid.uuid4().hex
        item_dir = self.base_directory / item_id
        metadata = {
            "id": item_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "waveform": list(waveform) if waveform is not None else None,
        }

        try:
            with self._lock.acquire(timeout=10):
                item_dir.mkdir()
                (item_dir / IMAGE_FILE).write_bytes(image_data)
                if audio_data:
                    (item_dir / AUDIO_FILE).write_bytes(audio_data)
                self._write_metadata(item_dir, metadata)
        except (OSError, filelock.Timeout) as e:
            shutil.rmtree(item_dir, ignore_errors=True)
            raise StorageError(f"Failed to save item: {e}") from e

        logger.info(f"🟢 Saved item {item_id}")
        return item_id

    def get(self, item_id: str) -> Optional[Item]:
        try:
            item_dir = self._item_dir(item_id)
        except StorageError:
            return None
        if not (item_dir / METADATA_FILE).exists():
            return None
        return self._load(item_dir)

    def _load(self, item_dir: Path) -> Item:
        try:
            with open(item_dir / METADATA_FILE, "r") as f:
                metadata = json.load(f)
            audio_path = item_dir / AUDIO_FILE
            return Item(
                id=metadata["id"],
                timestamp=datetime.fromisoformat(metadata["timestamp"]),
                image_data=(item_dir / IMAGE_FILE).read_bytes(),
                audio_data=audio_path.read_bytes() if audio_path.exists() else None,
                waveform=metadata.get("waveform"),
            )
        except (OSError, ValueError, KeyError) as e:
            raise StorageError(f"Corrupt item {item_dir.name}: {e}") from e

    def list_all(self) -> List[Item]:
        items = []
        for item_dir in self.base_directory.iterdir():
            if not item_dir.is_dir() or not (item_dir / METADATA_FILE).exists():
                continue
            try:
                items.append(self._load(item_dir))
            except StorageError as e:
                logger.warning(f"🟡 Skipping {e}")

        items.sort(key=lambda item: item.timestamp, reverse=True)
        return items

    def delete(self, item_id: str) -> None:
        item_dir = self._item_dir(item_id)
        try:
            with self._lock.acquire(timeout=10):
                if not item_dir.exists():
                    raise StorageError(f"No such item: {item_id}")
                shutil.rmtree(item_dir)
        except (OSError, filelock.Timeout) as e:
            raise StorageError(f"Failed to delete item {item_id}: {e}") from e

        logger.info(f"🗑️ Deleted item {item_id}")

    def update_waveform(self, item_id: str, waveform: List[float]) -> None:
        item_dir = self._item_dir(item_id)
        try:
            with self._lock.acquire(timeout=10):
                metadata_path = item_dir / METADATA_FILE
                if not metadata_path.exists():
                    raise StorageError(f"No such item: {item_id}")
                with open(metadata_path, "r") as f:
                    metadata = json.load(f)
                metadata["waveform"] = list(waveform)
                self._write_metadata(item_dir, metadata)
        except (OSError, ValueError, filelock.Timeout) as e:
            raise StorageError(f"Failed to update item {item_id}: {e}") from e

        logger.debug(f"Waveform cached for item {item_id}")
