"""Shared fixtures for dub producer tests."""

import numpy as np
import pytest
from pydub import AudioSegment

from dub_producer.models import AdjustedClip, Segment


def silent_audio(duration_ms=500):
    return AudioSegment.silent(duration=duration_ms, frame_rate=44100)


def loud_audio(duration_ms=500):
    """Create an AudioSegment with actual sound (not silence)."""
    samples = np.random.randint(-5000, 5000, int(44100 * duration_ms / 1000), dtype=np.int16)
    return AudioSegment(
        data=samples.tobytes(),
        sample_width=2,
        frame_rate=44100,
        channels=1,
    )


@pytest.fixture
def make_wav(tmp_path):
    """Factory writing a WAV of the given length; loud=True for noise."""
    counter = {"n": 0}

    def factory(duration_ms=500, loud=False, name=None):
        counter["n"] += 1
        path = tmp_path / (name or f"clip_{counter['n']}.wav")
        audio = loud_audio(duration_ms) if loud else silent_audio(duration_ms)
        audio.export(str(path), format="wav")
        return str(path)

    return factory


@pytest.fixture
def sample_segments():
    """Two speakers, with one short and one long gap between same-speaker lines."""
    return [
        Segment(index=0, speaker=0, begin=0.0, end=2.0, text="Bonjour à tous.", language="fr"),
        Segment(index=1, speaker=0, begin=2.3, end=4.0, text="Bienvenue.", language="fr"),
        Segment(index=2, speaker=1, begin=4.5, end=6.0, text="Merci.", language="fr"),
        Segment(index=3, speaker=0, begin=6.8, end=8.0, text="On commence.", language="fr"),
    ]


@pytest.fixture
def make_adjusted(make_wav):
    """Factory for an AdjustedClip backed by a real WAV of the clip's duration."""
    def factory(index, speaker, begin, duration, segment_duration=None):
        path = make_wav(int(duration * 1000), loud=True)
        segment_duration = segment_duration or duration
        return AdjustedClip(
            index=index,
            speaker=speaker,
            path=path,
            begin=begin,
            end=begin + segment_duration,
            segment_duration=segment_duration,
            duration=duration,
        )

    return factory
