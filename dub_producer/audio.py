"""Low-level audio primitives over pydub and ffmpeg.

Every function takes and returns file paths. Clips are kept as WAV so
pydub can read and write them without transcoding.
"""

import logging
import os
import shutil
import subprocess

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError
from pydub.silence import detect_leading_silence

from dub_producer.constants import (
    FRAME_RATE,
    MAX_PLAYBACK_SPEED,
    MIN_PLAYBACK_SPEED,
    SILENCE_CHUNK_MS,
    SILENCE_EPSILON_SECONDS,
    SILENCE_THRESHOLD_DB,
)
from dub_producer.errors import AudioUtilityError

logger = logging.getLogger(__name__)


def load_audio(path: str) -> AudioSegment:
    """Decode an audio file, mapping failures to AudioUtilityError."""
    if not path or not os.path.exists(path):
        raise AudioUtilityError(f"File not found: {path}")
    try:
        return AudioSegment.from_file(path)
    except (CouldntDecodeError, OSError, IndexError) as e:
        raise AudioUtilityError(f"Could not decode {path}: {e}") from e


def export_wav(audio: AudioSegment, output_path: str) -> str:
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    audio.export(output_path, format="wav")
    return output_path


def measure_duration(path: str) -> float:
    """Duration of the decoded audio in seconds."""
    return len(load_audio(path)) / 1000.0


def measure_loudness(path: str) -> float:
    """Average loudness in dBFS (-inf for pure silence)."""
    return load_audio(path).dBFS


def cut_range(path: str, begin: float, end: float, output_path: str) -> str:
    """Copy the [begin, end) seconds of a file into a new WAV."""
    if begin < 0 or end <= begin:
        raise ValueError(f"Invalid range: {begin}-{end}")
    audio = load_audio(path)
    return export_wav(audio[int(begin * 1000):int(end * 1000)], output_path)


def generate_silence(
    duration_seconds: float,
    output_path: str,
    frame_rate: int = FRAME_RATE,
) -> str:
    """Write exactly duration_seconds of silence to output_path."""
    if duration_seconds <= SILENCE_EPSILON_SECONDS:
        raise ValueError(
            f"Silence duration must be greater than {SILENCE_EPSILON_SECONDS}s, got {duration_seconds}"
        )
    silence = AudioSegment.silent(duration=duration_seconds * 1000, frame_rate=frame_rate)
    return export_wav(silence, output_path)


def concatenate(paths: list[str], output_path: str) -> str:
    """Join files end to end.

    Missing or empty inputs are skipped. With nothing usable left the
    target path is returned untouched: an all-silent timeline is valid.
    """
    usable = [p for p in paths if p and os.path.exists(p) and os.path.getsize(p) > 0]
    if len(usable) < len(paths):
        logger.warning("Skipping %d missing or empty file(s) during concatenation", len(paths) - len(usable))
    if not usable:
        logger.warning("No audio to concatenate into %s", output_path)
        return output_path

    result = load_audio(usable[0])
    for path in usable[1:]:
        result += load_audio(path)
    return export_wav(result, output_path)


def overlay(paths: list[str], output_path: str) -> str:
    """Mix files on top of each other. The longest input sets the length."""
    tracks = [load_audio(p) for p in paths]
    if not tracks:
        logger.warning("No tracks to overlay into %s", output_path)
        return output_path

    longest = max(len(t) for t in tracks)
    frame_rate = max(t.frame_rate for t in tracks)
    mixed = AudioSegment.silent(duration=longest, frame_rate=frame_rate)
    for track in tracks:
        mixed = mixed.overlay(track)
    return export_wav(mixed, output_path)


def trim_silence(
    path: str,
    output_path: str,
    threshold_db: float = SILENCE_THRESHOLD_DB,
) -> str:
    """Remove leading and trailing silence.

    A clip that is silent all the way through is kept as-is.
    """
    audio = load_audio(path)
    start = detect_leading_silence(audio, silence_threshold=threshold_db, chunk_size=SILENCE_CHUNK_MS)
    end = len(audio) - detect_leading_silence(
        audio.reverse(), silence_threshold=threshold_db, chunk_size=SILENCE_CHUNK_MS
    )
    if end <= start:
        logger.warning("Clip %s is entirely silent; leaving it untrimmed", path)
        return export_wav(audio, output_path)
    return export_wav(audio[start:end], output_path)


def check_speed_factor(factor: float) -> None:
    if factor < MIN_PLAYBACK_SPEED or factor > MAX_PLAYBACK_SPEED:
        raise ValueError(
            f"Speed factor must be between {MIN_PLAYBACK_SPEED} and {MAX_PLAYBACK_SPEED}, got {factor}"
        )


def change_speed(path: str, factor: float, output_path: str) -> str:
    """Pitch-preserving tempo change through ffmpeg's atempo filter.

    factor > 1 plays faster (shorter clip). A factor of exactly 1.0 returns
    the input path unchanged.
    """
    check_speed_factor(factor)
    if factor == 1.0:
        return path
    if not os.path.exists(path):
        raise AudioUtilityError(f"File not found: {path}")

    ffmpeg_bin = shutil.which("ffmpeg")
    if not ffmpeg_bin:
        raise AudioUtilityError("ffmpeg is required but not found")

    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    command = [
        ffmpeg_bin,
        "-y",
        "-i",
        path,
        "-vn",
        "-filter:a",
        f"atempo={factor:.5f}",
        "-f",
        "wav",
        output_path,
    ]
    result = subprocess.run(command, stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=False)
    if result.returncode != 0:
        stderr = result.stderr.decode(errors="replace").strip().splitlines()
        detail = stderr[-1] if stderr else f"exit {result.returncode}"
        raise AudioUtilityError(f"ffmpeg atempo failed for {path}: {detail}")
    return output_path
