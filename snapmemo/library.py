"""Access to saved items: listing, deletion, playback and lazy summaries."""

from typing import Dict, List, Optional, Set

from PySide6.QtCore import QObject, Signal, Slot

from snapmemo.audio.engine import AudioEngine
from snapmemo.storage.item import Item
from snapmemo.storage.repository import ItemRepository
from snapmemo.utils.exceptions import SnapMemoError, StorageError
from snapmemo.utils.logger import setup_logger
from snapmemo.waveform.pipeline import WaveformPipeline

logger = setup_logger(__name__)


class MemoLibrary(QObject):
    """Saved items plus the single shared playback engine."""

    # item id, summary list or None
    waveform_available = Signal(str, object)

    def __init__(
        self,
        repository: ItemRepository,
        pipeline: WaveformPipeline,
        engine: AudioEngine,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.repository = repository
        self.pipeline = pipeline
        self.engine = engine
        self._cache: Dict[str, List[float]] = {}
        self._requested: Set[str] = set()
        # ids whose memo could not be summarized
        self._failed: Set[str] = set()
        self._playing_id: Optional[str] = None

        self.pipeline.waveform_ready.connect(self._on_waveform_ready)
        self.engine.playback_finished.connect(self._on_playback_finished)

    @property
    def playing_id(self) -> Optional[str]:
        return self._playing_id if self.engine.is_playing else None

    def items(self) -> List[Item]:
        return self.repository.list_all()

    def delete(self, item_id: str) -> None:
        """Delete an item, stopping its playback first.

        Raises:
            StorageError: If the item does not exist or cannot be removed.
        """
        if self.playing_id == item_id:
            self.engine.stop_playback()
        self.repository.delete(item_id)
        self._cache.pop(item_id, None)
        self._failed.discard(item_id)

    def waveform_for(self, item: Item) -> Optional[List[float]]:
        """Return the item's summary, deriving it in the background if missing.

        A derived summary is announced through waveform_available and
        written back to storage, so it is computed at most once. A memo that
        cannot be summarized is not requested again.
        """
        if item.waveform is not None:
            return item.waveform
        if item.id in self._cache:
            return self._cache[item.id]
        if not item.has_audio or item.id in self._failed:
            return None

        if item.id not in self._requested:
            self._requested.add(item.id)
            self.pipeline.request(item.audio_data, key=item.id)
        return None

    @Slot(str, object)
    def _on_waveform_ready(self, key: str, summary: Optional[list]) -> None:
        if key not in self._requested:
            return
        self._requested.discard(key)

        if summary is None:
            self._failed.add(key)
            logger.warning(f"🟡 No waveform for item {key}")
        else:
            self._cache[key] = summary
            try:
                self.repository.update_waveform(key, summary)
            except StorageError as e:
                logger.warning(f"🟡 Waveform not persisted: {e}")

        self.waveform_available.emit(key, summary)

    def toggle_playback(self, item: Item) -> bool:
        """Play the item's memo, or stop it if it is already playing.

        Returns:
            True if the item is now playing.
        """
        if self.playing_id == item.id:
            self.engine.stop_playback()
            return False
        if not item.has_audio:
            logger.warning(f"🟡 Item {item.id} has no memo")
            return False

        try:
            self.engine.start_playback(item.audio_data)
        except SnapMemoError as e:
            logger.error(f"🛑 Cannot play item {item.id}: {e}")
            self._playing_id = None
            return False

        self._playing_id = item.id
        return True

    @Slot()
    def _on_playback_finished(self) -> None:
        self._playing_id = None
