"""Explicit pipeline configuration, passed into every component."""

import dataclasses
import os
from dataclasses import dataclass

from dub_producer import constants
from dub_producer.artifacts import load_artifact


@dataclass
class SyncConfig:
    merge_threshold: float = constants.MERGE_THRESHOLD_SECONDS
    max_chars_per_segment: int = constants.MAX_CHARS_PER_SEGMENT
    max_chars_per_segment_non_latin: int = constants.MAX_CHARS_PER_SEGMENT_NON_LATIN
    split_threshold: int = constants.SEGMENT_SPLIT_THRESHOLD
    absolute_max_chars: int = constants.SEGMENT_ABSOLUTE_MAX_CHARS

    min_speed_factor: float = constants.MIN_SPEED_FACTOR
    max_speed_factor: float = constants.MAX_SPEED_FACTOR
    max_reformulation_rounds: int = constants.MAX_REFORMULATION_ROUNDS
    fine_low_band: tuple[float, float] = constants.FINE_CORRECTION_LOW_BAND
    fine_high_band: tuple[float, float] = constants.FINE_CORRECTION_HIGH_BAND
    fine_accept_band: tuple[float, float] = constants.FINE_CORRECTION_ACCEPT_BAND
    rewrite_allowed_below_factor: float = constants.REWRITE_ALLOWED_BELOW_FACTOR
    rewrite_allowed_above_gap: float = constants.REWRITE_ALLOWED_ABOVE_GAP
    break_tag_min_seconds: float = constants.BREAK_TAG_MIN_SECONDS
    pause_threshold: float = constants.PAUSE_THRESHOLD_SECONDS

    silence_epsilon: float = constants.SILENCE_EPSILON_SECONDS
    frame_rate: int = constants.FRAME_RATE
    silence_threshold_db: float = constants.SILENCE_THRESHOLD_DB

    max_simultaneous_tts: int = constants.MAX_SIMULTANEOUS_TTS
    max_simultaneous_translations: int = constants.MAX_SIMULTANEOUS_TRANSLATIONS
    tts_retry_count: int = constants.TTS_RETRY_COUNT
    tts_retry_delay: float = constants.TTS_RETRY_DELAY
    tts_rate: str = constants.TTS_RATE
    rewrite_attempts: int = constants.REWRITE_ATTEMPTS
    rewrite_retry_count: int = constants.REWRITE_RETRY_COUNT
    rewrite_retry_delay: float = constants.REWRITE_RETRY_DELAY
    openai_model: str = constants.OPENAI_MODEL
    openai_temperature: float = constants.OPENAI_TEMPERATURE

    def clamp(self, speed_factor: float) -> float:
        """Clamp a speed factor into the accepted band."""
        return min(max(speed_factor, self.min_speed_factor), self.max_speed_factor)

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SyncConfig":
        """Build a config from a dict, ignoring keys it does not know."""
        known = {f.name: f for f in dataclasses.fields(cls)}
        kwargs = {}
        for key, value in data.items():
            if key not in known:
                continue
            if isinstance(value, list):
                value = tuple(value)
            kwargs[key] = value
        return cls(**kwargs)


def load_config(path: str | None) -> SyncConfig:
    """Load a JSON config file, falling back to defaults for missing keys."""
    if not path:
        return SyncConfig()
    data = load_artifact(os.path.dirname(path) or ".", os.path.basename(path))
    if not data:
        return SyncConfig()
    return SyncConfig.from_dict(data)
