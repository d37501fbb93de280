"""Tests for data models."""

import pytest

from dub_producer.errors import SegmentError
from dub_producer.models import AdjustedClip, Segment, SegmentOutcome, Utterance


def test_segment_duration_derived():
    """Duration follows begin/end, rounded to milliseconds."""
    seg = Segment(index=0, speaker=0, begin=1.1, end=3.4, text="Hi")
    assert seg.duration == 2.3
    seg.end = 4.0
    assert seg.duration == 2.9


def test_segment_begin_after_end():
    with pytest.raises(SegmentError):
        Segment(index=3, speaker=0, begin=2.0, end=1.0, text="bad")


def test_segment_zero_length():
    with pytest.raises(SegmentError):
        Segment(index=0, speaker=0, begin=1.0, end=1.0, text="bad")


def test_segment_sub_millisecond_rejected_at_load():
    """begin < end holds, but the rounded duration is zero."""
    with pytest.raises(SegmentError, match="rounds to zero"):
        Segment.from_dict({"index": 0, "begin": 1.0001, "end": 1.0004, "text": "bad"})


def test_segment_from_dict_defaults():
    """Optional fields default; stored duration in the dict is ignored."""
    seg = Segment.from_dict({"index": "2", "begin": 0, "end": 1.5, "text": "Hello", "duration": 99})
    assert seg.index == 2
    assert seg.speaker == 0
    assert seg.duration == 1.5
    assert seg.original_text == ""


def test_segment_to_dict_includes_duration():
    seg = Segment(index=0, speaker=1, begin=0.25, end=1.0, text="Hi", original_text="Salut")
    data = seg.to_dict()
    assert data["duration"] == 0.75
    assert data["original_text"] == "Salut"
    assert Segment.from_dict(data) == seg


def test_utterance_from_dict_with_words():
    utt = Utterance.from_dict({
        "text": "Hello world",
        "start": 0.0,
        "end": 1.0,
        "speaker": None,
        "words": [
            {"word": "Hello", "start": 0.0, "end": 0.4, "confidence": 0.9},
            {"word": " world", "start": 0.5, "end": 1.0},
        ],
    })
    assert utt.speaker == 0
    assert len(utt.words) == 2
    assert utt.words[1].confidence == 1.0


def test_adjusted_clip_from_dict_segment_duration_fallback():
    clip = AdjustedClip.from_dict({"index": 0, "path": "a.wav", "begin": 1.0, "end": 3.0, "duration": 2.1})
    assert clip.segment_duration == 2.0
    assert clip.speed_factor == 1.0


def test_segment_outcome_variants():
    clip = AdjustedClip(index=4, speaker=0, path="a.wav", begin=0, end=1, segment_duration=1, duration=1)
    ok = SegmentOutcome.success(clip)
    failed = SegmentOutcome.failure(5, "boom")
    assert ok.ok and ok.index == 4
    assert not failed.ok
    assert failed.error == "boom"
