"""Shape raw transcription utterances into bounded, mergeable segments."""

import json
import logging

from dub_producer.config import SyncConfig
from dub_producer.errors import FormattingError
from dub_producer.models import Segment, Utterance, Word

logger = logging.getLogger(__name__)

# Languages whose scripts pack more speech into each character; they get the
# stricter merge cap. Both names and ISO 639-1 codes are accepted.
NON_LATIN_SCRIPT_LANGUAGES = {
    "mandarin", "chinese", "cantonese", "japanese", "korean",
    "arabic", "hebrew", "persian", "russian", "ukrainian", "greek",
    "hindi", "bengali", "thai",
    "zh", "yue", "ja", "ko", "ar", "he", "fa", "ru", "uk", "el", "hi", "bn", "th",
}


def load_utterances(path: str) -> list[Utterance]:
    """Read a transcription JSON file.

    Accepts a bare list of utterances, {"utterances": [...]}, or the nested
    {"result": {"transcription": {"utterances": [...]}}} layout.
    """
    with open(path) as f:
        data = json.load(f)

    if isinstance(data, dict):
        if "utterances" in data:
            data = data["utterances"]
        else:
            data = data.get("result", {}).get("transcription", {}).get("utterances")
    if not isinstance(data, list):
        raise FormattingError(f"No utterances found in {path}")
    return [Utterance.from_dict(u) for u in data]


def max_characters_for(language: str, config: SyncConfig) -> int:
    """Merge cap for a language, stricter for non-Latin scripts."""
    if (language or "").strip().lower() in NON_LATIN_SCRIPT_LANGUAGES:
        return config.max_chars_per_segment_non_latin
    return config.max_chars_per_segment


def _chunk_from_words(words: list[Word], parent: Utterance) -> Utterance:
    return Utterance(
        text="".join(w.word for w in words).strip(),
        start=words[0].start,
        end=words[-1].end,
        speaker=parent.speaker,
        confidence=sum(w.confidence for w in words) / len(words),
        language=parent.language,
        channel=parent.channel,
        words=list(words),
    )


def split_utterance(utterance: Utterance, max_length: int) -> list[Utterance]:
    """Split an utterance by greedy word accumulation, never mid-word.

    A chunk is closed as soon as the next word would push it past max_length.
    """
    if not utterance.words:
        logger.warning("Utterance at %.3fs has no word timings; cannot split", utterance.start)
        return [utterance]

    chunks = []
    current: list[Word] = []
    current_length = 0
    for word in utterance.words:
        if current and current_length + len(word.word) > max_length:
            chunks.append(_chunk_from_words(current, utterance))
            current = []
            current_length = 0
        current.append(word)
        current_length += len(word.word)

    if current:
        chunks.append(_chunk_from_words(current, utterance))
    return chunks


def split_long_utterances(utterances: list[Utterance], max_length: int) -> list[Utterance]:
    result = []
    for utterance in utterances:
        if len(utterance.text) > max_length:
            result.extend(split_utterance(utterance, max_length))
        else:
            result.append(utterance)
    return result


def annotate_silences(words: list[Word]) -> str:
    """Inline the pause after each word: "Hello<0.25s>world"."""
    parts = []
    for i, word in enumerate(words):
        text = word.word.strip()
        if i < len(words) - 1:
            gap = str(words[i + 1].start - word.end)[:5]
            text += f"<{gap}s>"
        parts.append(text)
    return "".join(parts)


def _to_segments(utterances: list[Utterance], detected_language: str) -> list[Segment]:
    segments = []
    for utterance in utterances:
        begin = round(utterance.start, 3)
        end = round(utterance.end, 3)
        if end <= begin:
            logger.warning("Dropping zero-length utterance at %.3fs: %r", begin, utterance.text[:50])
            continue
        segments.append(Segment(
            index=len(segments),
            speaker=utterance.speaker,
            begin=begin,
            end=end,
            text=utterance.text,
            words_with_silence=annotate_silences(utterance.words),
            confidence=utterance.confidence,
            language=detected_language,
            channel=utterance.channel,
        ))
    return segments


def merge_segments(segments: list[Segment], config: SyncConfig) -> list[Segment]:
    """Merge adjacent same-speaker segments separated by a short gap.

    The combined text must stay under the language's character cap.
    """
    if not segments:
        raise FormattingError("No transcription found in the response")

    logger.debug("Merging %d segments", len(segments))
    merged = []
    current = segments[0]
    for nxt in segments[1:]:
        gap = nxt.begin - current.end
        limit = max_characters_for(nxt.language, config)
        if (
            gap <= config.merge_threshold
            and current.speaker == nxt.speaker
            and len(current.text) + len(nxt.text) < limit
        ):
            current = Segment(
                index=current.index,
                speaker=current.speaker,
                begin=current.begin,
                end=nxt.end,
                text=current.text + " " + nxt.text,
                words_with_silence=current.words_with_silence + nxt.words_with_silence,
                confidence=current.confidence,
                language=current.language,
                channel=current.channel,
            )
        else:
            merged.append(current)
            current = nxt
    merged.append(current)
    return merged


def format_transcription(
    utterances: list[Utterance],
    detected_language: str,
    config: SyncConfig | None = None,
) -> list[Segment]:
    """Split, merge and re-index utterances into ordered segments.

    Raises FormattingError when nothing usable remains or when a merged
    segment reaches the absolute character cap.
    """
    config = config or SyncConfig()
    split = split_long_utterances(utterances, config.split_threshold)
    segments = merge_segments(_to_segments(split, detected_language), config)

    for i, segment in enumerate(segments):
        segment.index = i
        if len(segment.text) >= config.absolute_max_chars:
            raise FormattingError(
                f"Segment {i} is too long ({len(segment.text)} >= {config.absolute_max_chars} characters)"
            )

    logger.info("Formatted %d utterances into %d segments", len(utterances), len(segments))
    return segments
