"""Shared utilities for SnapMemo."""
