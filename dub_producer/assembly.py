"""Lay adjusted clips out on a timeline: per-speaker tracks, then a mix."""

import logging
import os
import uuid

from dub_producer.audio import concatenate, generate_silence, overlay
from dub_producer.config import SyncConfig
from dub_producer.models import AdjustedClip

logger = logging.getLogger(__name__)


def _gap_before(clip: AdjustedClip, previous_end: float) -> float:
    return round(clip.begin - previous_end, 4)


def build_speaker_track(
    clips: list[AdjustedClip],
    output_path: str,
    workdir: str,
    config: SyncConfig | None = None,
) -> str:
    """Concatenate one speaker's clips with silence filling the gaps.

    Each clip is anchored on its segment's begin. The running end point then
    advances by the clip's own measured duration, so a clip that overruns
    pushes the next one later instead of overlapping it. Timing downstream of
    a long clip can drift; overlaps never happen.
    """
    config = config or SyncConfig()
    pieces = []
    silences = []
    previous_end = 0.0

    try:
        for clip in sorted(clips, key=lambda c: c.begin):
            gap = _gap_before(clip, previous_end)
            if clip.begin > previous_end and gap > config.silence_epsilon:
                silence_path = os.path.join(workdir, f"silence-{uuid.uuid4().hex[:12]}.wav")
                generate_silence(gap, silence_path, config.frame_rate)
                silences.append(silence_path)
                pieces.append(silence_path)
            pieces.append(clip.path)
            previous_end = clip.begin + clip.duration

        return concatenate(pieces, output_path)
    finally:
        for path in silences:
            if os.path.exists(path):
                os.remove(path)


def speakers_in_order(clips: list[AdjustedClip]) -> list:
    """Distinct speakers, in order of first appearance on the timeline."""
    speakers = []
    for clip in sorted(clips, key=lambda c: c.index):
        if clip.speaker not in speakers:
            speakers.append(clip.speaker)
    return speakers


def assemble(
    clips: list[AdjustedClip],
    output_path: str,
    workdir: str,
    config: SyncConfig | None = None,
) -> str:
    """Build the full timeline from adjusted clips.

    One speaker: its track is the output. Several: one track per speaker,
    mixed together (the longest track sets the length).
    """
    config = config or SyncConfig()
    speakers = speakers_in_order(clips)

    if len(speakers) <= 1:
        logger.debug("Assembling audio for one speaker")
        return build_speaker_track(clips, output_path, workdir, config)

    logger.debug("Overlaying audio for %d speakers", len(speakers))
    tracks = []
    try:
        for speaker in speakers:
            speaker_clips = [c for c in clips if c.speaker == speaker]
            track_path = os.path.join(workdir, f"track-{speaker}-{uuid.uuid4().hex[:8]}.wav")
            tracks.append(build_speaker_track(speaker_clips, track_path, workdir, config))
        return overlay([t for t in tracks if os.path.exists(t)], output_path)
    finally:
        for path in tracks:
            if os.path.exists(path):
                os.remove(path)
