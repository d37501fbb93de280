"""Clip duration measurement and the speed factor derived from it."""

import logging

from dub_producer.audio import measure_duration
from dub_producer.errors import AudioUtilityError, SegmentError

logger = logging.getLogger(__name__)


def get_duration(path: str) -> float:
    """Measured duration in seconds. Raises AudioUtilityError on failure."""
    duration = measure_duration(path)
    if duration <= 0:
        raise AudioUtilityError(f"Could not determine duration of {path}")
    return duration


def estimate_duration(path: str, fallback: float | None = None) -> float:
    """Like get_duration, but falls back to a previously known value.

    Without a fallback the error propagates.
    """
    try:
        return get_duration(path)
    except AudioUtilityError as e:
        if fallback is None:
            raise
        logger.warning("Duration of %s unavailable (%s); using previous value %.3fs", path, e, fallback)
        return fallback


def speed_factor(clip_duration: float, segment_duration: float) -> float:
    """Ratio of synthesized duration to the original segment duration."""
    if segment_duration <= 0:
        raise SegmentError(f"Segment duration must be positive, got {segment_duration}")
    return clip_duration / segment_duration
