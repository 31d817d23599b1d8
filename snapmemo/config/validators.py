"""Configuration validation schemas using Pydantic."""

from typing import Any, Dict, Optional, Set

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)


class AudioConfig(BaseModel):
    """Audio capture, playback and timing policy validation."""

    device: Optional[int] = Field(default=None, description="Input device index")
    output_device: Optional[int] = Field(
        default=None, description="Output device index"
    )
    sample_rate: int = Field(default=44100, description="Capture sample rate")
    channels: int = Field(default=1, description="Number of capture channels")
    chunk_size: int = Field(default=1024, description="Stream block size")
    clip_format: str = Field(default="OGG", description="Clip container format")
    clip_subtype: Optional[str] = Field(
        default="VORBIS", description="Clip codec subtype"
    )

    # Hold-to-record policy
    min_hold_duration: float = Field(
        default=8.0, description="Seconds before a manual stop is accepted"
    )
    max_recording_duration: float = Field(
        default=30.0, description="Recording auto-stops after this many seconds"
    )
    update_rate_hz: int = Field(default=20, description="Live time update rate")

    @field_validator("sample_rate")
    @classmethod
    def validate_sample_rate(cls, v: int) -> int:
        valid_rates = (8000, 16000, 22050, 44100, 48000)
        if v not in valid_rates:
            raise ValueError(f"Sample rate must be one of: {valid_rates}")
        return v

    @field_validator("channels")
    @classmethod
    def validate_channels(cls, v: int) -> int:
        if v not in (1, 2):
            raise ValueError("Channels must be 1 (mono) or 2 (stereo)")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Chunk size must be positive")
        return v

    @field_validator("clip_format")
    @classmethod
    def validate_clip_format(cls, v: str) -> str:
        valid_formats = ("OGG", "FLAC", "WAV")
        if v.upper() not in valid_formats:
            raise ValueError(f"Clip format must be one of: {valid_formats}")
        return v.upper()

    @field_validator("min_hold_duration")
    @classmethod
    def validate_min_hold(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Minimum hold duration cannot be negative")
        return v

    @field_validator("max_recording_duration")
    @classmethod
    def validate_max_duration(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Max recording duration must be positive")
        if v > 3600:  # 1 hour max
            raise ValueError("Max recording duration cannot exceed 1 hour")
        return v

    @field_validator("update_rate_hz")
    @classmethod
    def validate_update_rate(cls, v: int) -> int:
        if not 10 <= v <= 30:
            raise ValueError("Update rate must be between 10 and 30 Hz")
        return v

    @model_validator(mode="after")
    def check_hold_within_max(self) -> "AudioConfig":
        if self.min_hold_duration > self.max_recording_duration:
            raise ValueError(
                "Minimum hold duration cannot exceed max recording duration"
            )
        return self


class WaveformConfig(BaseModel):
    """Waveform summary configuration validation."""

    summary_length: int = Field(default=100, description="Bars per summary")
    block_size: int = Field(
        default=1024, description="Frames per amplitude measurement"
    )
    temp_directory: Optional[str] = Field(
        default=None, description="Directory for temporary decode files"
    )

    @field_validator("summary_length", "block_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v


class StorageConfig(BaseModel):
    """Captured item storage configuration validation."""

    directory: str = Field(default="captures", description="Item storage root")


class LoggingConfig(BaseModel):
    """Logging configuration validation."""

    level: str = Field(default="INFO", description="Logging level")
    directory: str = Field(default="logs", description="Log file directory")
    file_enabled: bool = Field(default=True, description="Write daily log files")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()


class SnapMemoConfig(BaseModel):
    """Main SnapMemo configuration validation."""

    app: Dict[str, Any] = Field(default_factory=dict)
    audio: AudioConfig = Field(default_factory=AudioConfig)
    waveform: WaveformConfig = Field(default_factory=WaveformConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "extra": "allow",
        "validate_assignment": True,
    }


def validate_config(config_dict: Dict[str, Any]) -> SnapMemoConfig:
    """Validate configuration dictionary using Pydantic schemas.

    Args:
        config_dict: Configuration dictionary to validate

    Returns:
        Validated SnapMemoConfig instance

    Raises:
        ValueError: If configuration validation fails
    """
    try:
        return SnapMemoConfig(**config_dict)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")


def find_invalid_sections(config_dict: Dict[str, Any]) -> Set[str]:
    """Name the top-level sections that fail validation on their own."""
    invalid = set()
    for name in SnapMemoConfig.model_fields:
        if name not in config_dict:
            continue
        try:
            SnapMemoConfig(**{name: config_dict[name]})
        except ValidationError:
            invalid.add(name)
    return invalid
