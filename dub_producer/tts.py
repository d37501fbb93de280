"""Speech synthesis via edge-tts with retry logic and batched scheduling."""

import asyncio
import logging
import os
import uuid
from collections import defaultdict, deque

import edge_tts

from dub_producer.audio import export_wav, load_audio
from dub_producer.config import SyncConfig
from dub_producer.constants import TTS_CONTEXT_REQUEST_IDS
from dub_producer.duration import get_duration
from dub_producer.errors import AudioUtilityError, InvalidMediaError, ProtectedVoiceError, SynthesisError
from dub_producer.models import Segment, SpeechClip

logger = logging.getLogger(__name__)

# HTTP statuses the service answers with when a voice may not be used.
_PROTECTED_STATUSES = {401, 403}


def speed_to_rate(speed_hint: float | None, base_rate: str = "+0%") -> str:
    """Turn a speed multiplier into an edge-tts rate string.

    1.15 on top of "+0%" gives "+15%"; 0.9 on top of "-10%" gives "-20%".
    """
    percent = int(base_rate.strip().rstrip("%") or 0)
    if speed_hint:
        percent += round((speed_hint - 1.0) * 100)
    return f"{percent:+d}%"


def _is_protected(error: Exception) -> bool:
    return getattr(error, "status", None) in _PROTECTED_STATUSES


def neighbour_context(segments: list[Segment], position: int, config: SyncConfig) -> tuple[str, str]:
    """Previous and next text to give the synthesizer for prosody.

    A neighbour only counts when it is the same speaker and the gap to it is
    shorter than the pause threshold; otherwise its text is withheld.
    """
    current = segments[position]
    previous_text = ""
    next_text = ""

    if position > 0:
        prev = segments[position - 1]
        if prev.speaker == current.speaker and current.begin - prev.end < config.pause_threshold:
            previous_text = prev.text

    if position + 1 < len(segments):
        nxt = segments[position + 1]
        if nxt.speaker == current.speaker and nxt.begin - current.end < config.pause_threshold:
            next_text = nxt.text

    return previous_text, next_text


class EdgeTTSSynthesizer:
    """Speech-synthesis collaborator backed by edge-tts.

    edge-tts has no notion of surrounding text, so previous/next context is
    accepted for interface compatibility and only logged. The speed hint is
    mapped onto the rate parameter.
    """

    def __init__(self, output_dir: str, config: SyncConfig | None = None):
        self.output_dir = output_dir
        self.config = config or SyncConfig()
        self.recent_request_ids = deque(maxlen=TTS_CONTEXT_REQUEST_IDS)
        self.takes = defaultdict(int)
        os.makedirs(output_dir, exist_ok=True)

    def _clip_base(self, index: int, speaker) -> str:
        """Path without extension; the n-th take of a segment gets an _n suffix.

        Names restart with every synthesizer, so a re-run overwrites the
        previous run's takes.
        """
        self.takes[index] += 1
        take = self.takes[index]
        speaker_slug = str(speaker).replace(" ", "_").lower()
        suffix = f"_{take}" if take > 1 else ""
        return os.path.join(self.output_dir, f"{index:03d}_speaker_{speaker_slug}{suffix}")

    async def _save_with_retry(self, text: str, voice: str, rate: str, output_path: str) -> None:
        """Run edge-tts, retrying transient failures with a fixed delay.

        0-byte output counts as a failure. Protected voices fail immediately.
        """
        attempts = self.config.tts_retry_count
        last_error = None
        for attempt in range(attempts):
            try:
                communicate = edge_tts.Communicate(text, voice, rate=rate)
            except ValueError as e:
                raise ProtectedVoiceError(f"Voice {voice!r} cannot be used for synthesis: {e}") from e

            try:
                await communicate.save(output_path)
                if os.path.exists(output_path) and os.path.getsize(output_path) > 0:
                    logger.debug("Speech generated on attempt %d", attempt + 1)
                    return
                last_error = SynthesisError(f"TTS produced 0-byte file for: {text[:50]}...")
            except Exception as e:
                if _is_protected(e):
                    raise ProtectedVoiceError(
                        f"The voice {voice!r} cannot be used, because it is a protected voice."
                    ) from e
                last_error = e

            logger.warning("TTS attempt %d/%d failed: %s", attempt + 1, attempts, last_error)
            if attempt < attempts - 1:
                await asyncio.sleep(self.config.tts_retry_delay)

        raise SynthesisError(
            f"Error during audio generation after {attempts} attempts: {last_error}"
        ) from last_error

    async def synthesize(
        self,
        text: str,
        voice: str,
        index: int,
        speaker=0,
        previous_text: str = "",
        next_text: str = "",
        speed_hint: float | None = None,
    ) -> SpeechClip:
        """Synthesize one clip and return it with its measured duration."""
        if previous_text or next_text:
            logger.debug("Segment %d context: prev=%r next=%r", index, previous_text[:30], next_text[:30])

        rate = speed_to_rate(speed_hint, self.config.tts_rate)
        base = self._clip_base(index, speaker)
        mp3_path = f"{base}.mp3"
        wav_path = f"{base}.wav"
        try:
            await self._save_with_retry(text, voice, rate, mp3_path)
            try:
                await asyncio.to_thread(_mp3_to_wav, mp3_path, wav_path, self.config.frame_rate)
            except AudioUtilityError as e:
                raise InvalidMediaError(f"Synthesized audio for segment {index} is not valid media: {e}") from e
        finally:
            if os.path.exists(mp3_path):
                os.remove(mp3_path)

        duration = await asyncio.to_thread(get_duration, wav_path)
        request_id = str(uuid.uuid4())
        self.recent_request_ids.append(request_id)
        return SpeechClip(
            index=index,
            speaker=speaker,
            path=wav_path,
            duration=duration,
            request_id=request_id,
            text=text,
        )


def _mp3_to_wav(mp3_path: str, wav_path: str, frame_rate: int) -> None:
    export_wav(load_audio(mp3_path).set_frame_rate(frame_rate), wav_path)


def voice_for(speaker, voice_map: dict) -> str:
    voice = voice_map.get(str(speaker))
    if not voice:
        raise SynthesisError(f"No voice assigned to speaker {speaker}")
    return voice


async def synthesize_all(
    segments: list[Segment],
    voice_map: dict,
    synthesizer,
    config: SyncConfig | None = None,
) -> list[SpeechClip]:
    """Synthesize every segment in bounded-width batches.

    A batch runs concurrently; the next one starts once the whole batch has
    resolved. Clips come back sorted by segment index.
    """
    config = config or SyncConfig()
    ordered = sorted(segments, key=lambda s: s.index)
    width = max(1, config.max_simultaneous_tts)
    total = len(ordered)
    clips = []

    for start in range(0, total, width):
        batch = []
        for position in range(start, min(start + width, total)):
            seg = ordered[position]
            previous_text, next_text = neighbour_context(ordered, position, config)
            print(f"  Generating segment {position + 1}/{total} (speaker {seg.speaker})")
            batch.append(synthesizer.synthesize(
                seg.text,
                voice_for(seg.speaker, voice_map),
                index=seg.index,
                speaker=seg.speaker,
                previous_text=previous_text,
                next_text=next_text,
            ))
        clips.extend(await asyncio.gather(*batch))

    return sorted(clips, key=lambda c: c.index)
