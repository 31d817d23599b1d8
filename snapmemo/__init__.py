"""SnapMemo: still images paired with short voice memos."""

__version__ = "0.1.0"
