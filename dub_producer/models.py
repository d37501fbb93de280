"""Data models for the dubbing pipeline."""

from dataclasses import dataclass, field

from dub_producer.errors import SegmentError


@dataclass
class Word:
    word: str
    start: float
    end: float
    confidence: float = 1.0

    @classmethod
    def from_dict(cls, data: dict) -> "Word":
        return cls(
            word=data["word"],
            start=float(data["start"]),
            end=float(data["end"]),
            confidence=float(data.get("confidence", 1.0)),
        )


@dataclass
class Utterance:
    """One raw utterance as returned by the transcription service."""

    text: str
    start: float
    end: float
    speaker: int = 0
    confidence: float = 1.0
    language: str = ""
    channel: int = 0
    words: list[Word] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Utterance":
        return cls(
            text=data["text"],
            start=float(data["start"]),
            end=float(data["end"]),
            speaker=data.get("speaker") or 0,
            confidence=float(data.get("confidence", 1.0)),
            language=data.get("language", ""),
            channel=data.get("channel") or 0,
            words=[Word.from_dict(w) for w in data.get("words", [])],
        )


@dataclass
class Segment:
    """A bounded span of one speaker's speech on the source timeline.

    Duration is always derived from begin/end so it cannot go stale when a
    merge moves the end point.
    """

    index: int
    speaker: int
    begin: float
    end: float
    text: str
    words_with_silence: str = ""
    confidence: float = 1.0
    language: str = ""
    channel: int = 0
    original_text: str = ""

    def __post_init__(self):
        if self.begin >= self.end:
            raise SegmentError(
                f"Segment {self.index}: begin ({self.begin}) must be before end ({self.end})"
            )
        if self.duration <= 0:
            raise SegmentError(
                f"Segment {self.index}: duration rounds to zero ({self.begin}-{self.end})"
            )

    @property
    def duration(self) -> float:
        return round(self.end - self.begin, 3)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "speaker": self.speaker,
            "begin": self.begin,
            "end": self.end,
            "duration": self.duration,
            "text": self.text,
            "original_text": self.original_text,
            "words_with_silence": self.words_with_silence,
            "confidence": self.confidence,
            "language": self.language,
            "channel": self.channel,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Segment":
        return cls(
            index=int(data["index"]),
            speaker=data.get("speaker", 0),
            begin=float(data["begin"]),
            end=float(data["end"]),
            text=data["text"],
            words_with_silence=data.get("words_with_silence", ""),
            confidence=float(data.get("confidence", 1.0)),
            language=data.get("language", ""),
            channel=data.get("channel", 0),
            original_text=data.get("original_text", ""),
        )


@dataclass
class SpeechClip:
    """A synthesized audio file tied to a segment by index."""

    index: int
    speaker: int
    path: str
    duration: float
    request_id: str = ""
    text: str = ""


@dataclass
class AdjustedClip:
    """A clip after timing adaptation, anchored on its segment's begin."""

    index: int
    speaker: int
    path: str
    begin: float
    end: float
    segment_duration: float
    duration: float
    speed_factor: float = 1.0
    rounds: int = 0
    text: str = ""

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "speaker": self.speaker,
            "path": self.path,
            "begin": self.begin,
            "end": self.end,
            "segment_duration": self.segment_duration,
            "duration": self.duration,
            "speed_factor": self.speed_factor,
            "rounds": self.rounds,
            "text": self.text,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AdjustedClip":
        return cls(
            index=int(data["index"]),
            speaker=data.get("speaker", 0),
            path=data["path"],
            begin=float(data["begin"]),
            end=float(data["end"]),
            segment_duration=float(data.get("segment_duration", data["end"] - data["begin"])),
            duration=float(data["duration"]),
            speed_factor=float(data.get("speed_factor", 1.0)),
            rounds=int(data.get("rounds", 0)),
            text=data.get("text", ""),
        )


@dataclass
class SegmentOutcome:
    """Result of adapting one segment: either a clip or an error message."""

    index: int
    clip: AdjustedClip | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.clip is not None and self.error is None

    @classmethod
    def success(cls, clip: AdjustedClip) -> "SegmentOutcome":
        return cls(index=clip.index, clip=clip)

    @classmethod
    def failure(cls, index: int, error: str) -> "SegmentOutcome":
        return cls(index=index, error=error)
