"""Custom exception definitions for SnapMemo."""


class SnapMemoError(Exception):
    """Base exception class for SnapMemo errors."""

    pass


class ConfigurationError(SnapMemoError):
    """Raised when configuration is invalid or cannot be loaded/saved."""

    pass


class AudioSessionError(SnapMemoError):
    """Raised when an audio stream operation fails."""

    pass


class SessionUnavailable(AudioSessionError):
    """Raised when the input or output device cannot be acquired.

    Covers denied microphone permission, busy or missing devices and
    unsupported stream parameters. The engine state is left unchanged.
    """

    pass


class DecodeFailed(SnapMemoError):
    """Raised when an audio clip cannot be decoded."""

    pass


class StorageError(SnapMemoError):
    """Raised when saving, loading or deleting a captured item fails."""

    pass


class EncodeFailed(SnapMemoError):
    """Raised when captured frames cannot be encoded into a clip."""

    pass
