"""Bring each synthesized clip's duration back in line with its segment.

For every segment the speed factor (clip duration / segment duration) is
compared against the accepted band. Clips outside it go through at most
``max_reformulation_rounds`` rounds of rewrite + resynthesis: too long asks the
rewriter for a shorter line, too short asks for a longer one (pauses only,
unless the gap is large enough to justify new words). A clip that ends up just
outside the band gets one extra synthesis with a speed hint. Finally the
clamped factor is applied as a tempo change and the result is measured again.
"""

import asyncio
import logging
import os
from dataclasses import dataclass

from dub_producer.audio import change_speed, trim_silence
from dub_producer.config import SyncConfig
from dub_producer.duration import estimate_duration, get_duration, speed_factor
from dub_producer.errors import AudioUtilityError, CollaboratorError, DubbingError, InputValidationError
from dub_producer.models import AdjustedClip, Segment, SegmentOutcome, SpeechClip
from dub_producer.tts import neighbour_context, voice_for

logger = logging.getLogger(__name__)


@dataclass
class AdaptationContext:
    previous_text: str = ""
    next_text: str = ""
    target_language: str = ""
    source_language: str = ""
    summary: str = ""


def _in_band(value: float, band: tuple[float, float]) -> bool:
    return band[0] <= value <= band[1]


def _remove(path: str) -> None:
    if path and os.path.exists(path):
        os.remove(path)


async def _resynthesize(
    text: str,
    segment: Segment,
    voice_id: str,
    context: AdaptationContext,
    synthesizer,
    config: SyncConfig,
    owned: list[str],
) -> SpeechClip:
    """Synthesize new text, strip its edge silence and measure it."""
    clip = await synthesizer.synthesize(
        text,
        voice_id,
        index=segment.index,
        speaker=segment.speaker,
        previous_text=context.previous_text,
        next_text=context.next_text,
    )
    owned.append(clip.path)

    root, ext = os.path.splitext(clip.path)
    trimmed_path = f"{root}_trimmed{ext or '.wav'}"
    owned.append(trimmed_path)
    await asyncio.to_thread(trim_silence, clip.path, trimmed_path, config.silence_threshold_db)
    duration = await asyncio.to_thread(get_duration, trimmed_path)
    return SpeechClip(
        index=clip.index,
        speaker=clip.speaker,
        path=trimmed_path,
        duration=duration,
        request_id=clip.request_id,
        text=text,
    )


async def adapt(
    segment: Segment,
    clip: SpeechClip,
    voice_id: str,
    context: AdaptationContext,
    synthesizer,
    rewriter,
    config: SyncConfig | None = None,
    output_dir: str | None = None,
) -> AdjustedClip:
    """Run the correction loop for one segment and return the adjusted clip.

    Intermediate files created here are removed before returning, whatever
    the outcome; the input clip is left to its owner.
    """
    config = config or SyncConfig()
    output_dir = output_dir or os.path.dirname(clip.path) or "."
    target = segment.duration

    current = clip
    text = segment.text
    factor = speed_factor(current.duration, target)
    clamped = config.clamp(factor)
    lengthened = False
    rounds = 0
    owned: list[str] = []
    final_path = None

    try:
        while rounds < config.max_reformulation_rounds and (
            factor > config.max_speed_factor or factor < config.min_speed_factor
        ):
            if factor > config.max_speed_factor:
                logger.debug("Segment %d too long (speed factor %.3f), shortening", segment.index, factor)
                text = await rewriter.shorten(
                    text,
                    segment.original_text or segment.text,
                    context.target_language,
                    target,
                    current.duration,
                    context.summary,
                )
            else:
                gap = target - current.duration
                allow_rewrite = factor < config.rewrite_allowed_below_factor or gap > config.rewrite_allowed_above_gap
                logger.debug(
                    "Segment %d too short (speed factor %.3f), lengthening (rewrite allowed: %s)",
                    segment.index, factor, allow_rewrite,
                )
                text = await rewriter.lengthen(
                    text,
                    segment.words_with_silence,
                    context.target_language,
                    context.source_language,
                    target,
                    current.duration,
                    allow_rewrite,
                    context.summary,
                )
                lengthened = True

            current = await _resynthesize(text, segment, voice_id, context, synthesizer, config, owned)
            factor = speed_factor(current.duration, target)
            clamped = config.clamp(factor)
            rounds += 1
            logger.debug("Reformulation round %d: speed factor %.3f (clamped %.3f)", rounds, factor, clamped)

        if not lengthened and (_in_band(factor, config.fine_low_band) or _in_band(factor, config.fine_high_band)):
            candidate = await synthesizer.synthesize(
                text,
                voice_id,
                index=segment.index,
                speaker=segment.speaker,
                previous_text=context.previous_text,
                next_text=context.next_text,
                speed_hint=factor,
            )
            owned.append(candidate.path)
            candidate_factor = speed_factor(candidate.duration, target)
            low, high = config.fine_accept_band
            if low < candidate_factor < high:
                logger.debug("Segment %d speed hint accepted (%.3f → %.3f)", segment.index, factor, candidate_factor)
                current = candidate
                factor = candidate_factor
                clamped = config.clamp(factor)
            else:
                logger.debug("Segment %d speed hint discarded (%.3f)", segment.index, candidate_factor)

        adjusted_path = os.path.join(output_dir, f"{segment.index:03d}_adjusted.wav")
        # A factor of 1.0 hands back current.path, which then must survive cleanup.
        final_path = await asyncio.to_thread(change_speed, current.path, clamped, adjusted_path)
        final_duration = await asyncio.to_thread(
            estimate_duration, final_path, current.duration / clamped
        )
    finally:
        for path in owned:
            if path != final_path:
                _remove(path)

    return AdjustedClip(
        index=segment.index,
        speaker=segment.speaker,
        path=final_path,
        begin=segment.begin,
        end=segment.end,
        segment_duration=target,
        duration=final_duration,
        speed_factor=clamped,
        rounds=rounds,
        text=text,
    )


async def adapt_all(
    segments: list[Segment],
    clips: list[SpeechClip],
    voice_map: dict,
    synthesizer,
    rewriter,
    config: SyncConfig | None = None,
    target_language: str = "",
    source_language: str = "",
    summary: str = "",
    output_dir: str | None = None,
) -> list[SegmentOutcome]:
    """Adapt every clip to its segment, in segment order.

    Segments are processed one after another because each correction uses
    the final text of the segment before it as context. An audio failure
    marks that segment as failed. Collaborator errors have already used up
    their retries (or are terminal) and stop the run at once, as does
    invalid input. Each input clip is deleted once its adjusted clip exists
    elsewhere.
    """
    config = config or SyncConfig()
    if len(segments) != len(clips):
        raise InputValidationError(
            f"Array length mismatch: {len(segments)} segments, {len(clips)} clips"
        )

    ordered_segments = sorted(segments, key=lambda s: s.index)
    ordered_clips = sorted(clips, key=lambda c: c.index)
    for seg, clip in zip(ordered_segments, ordered_clips):
        if seg.index != clip.index:
            raise InputValidationError(f"Clip {clip.index} does not match segment {seg.index}")

    total = len(ordered_segments)
    outcomes = []
    previous_final_text = ""
    for position, (seg, clip) in enumerate(zip(ordered_segments, ordered_clips)):
        previous_text, next_text = neighbour_context(ordered_segments, position, config)
        if previous_text and previous_final_text:
            previous_text = previous_final_text
        context = AdaptationContext(
            previous_text=previous_text,
            next_text=next_text,
            target_language=target_language or seg.language,
            source_language=source_language,
            summary=summary,
        )

        print(f"  Adapting segment {position + 1}/{total}")
        try:
            adjusted = await adapt(
                seg, clip, voice_for(seg.speaker, voice_map), context,
                synthesizer, rewriter, config, output_dir=output_dir,
            )
        except AudioUtilityError as e:
            logger.error("Segment %d could not be adapted: %s", seg.index, e)
            outcomes.append(SegmentOutcome.failure(seg.index, str(e)))
            previous_final_text = seg.text
            continue
        except CollaboratorError as e:
            logger.error("Segment %d: %s; stopping", seg.index, e)
            raise

        if adjusted.path != clip.path:
            _remove(clip.path)
        outcomes.append(SegmentOutcome.success(adjusted))
        previous_final_text = adjusted.text

    return outcomes


def collect_clips(outcomes: list[SegmentOutcome]) -> list[AdjustedClip]:
    """Unwrap outcomes, raising if any segment failed."""
    failed = [o for o in outcomes if not o.ok]
    if failed:
        details = "; ".join(f"segment {o.index}: {o.error}" for o in failed)
        raise DubbingError(f"Error while adjusting speeches ({len(failed)} failed): {details}")
    return sorted((o.clip for o in outcomes), key=lambda c: c.index)
