"""Tests for the timeline assembler."""

import os

import pytest

from dub_producer.assembly import assemble, build_speaker_track, speakers_in_order
from dub_producer.audio import measure_duration


@pytest.fixture
def workdir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return str(path)


def test_single_speaker_total_duration(make_adjusted, workdir, tmp_path):
    """Output length is last.begin + last.duration."""
    clips = [make_adjusted(0, 0, 0.5, 1.0), make_adjusted(1, 0, 2.0, 0.8)]
    out = assemble(clips, str(tmp_path / "out.wav"), workdir)
    assert measure_duration(out) == pytest.approx(2.8, abs=0.005)


def test_clip_order_does_not_matter(make_adjusted, workdir, tmp_path):
    clips = [make_adjusted(1, 0, 2.0, 0.8), make_adjusted(0, 0, 0.5, 1.0)]
    out = build_speaker_track(clips, str(tmp_path / "out.wav"), workdir)
    assert measure_duration(out) == pytest.approx(2.8, abs=0.005)


def test_overrunning_clip_pushes_next(make_adjusted, workdir, tmp_path):
    """A long clip delays the next one instead of overlapping it."""
    clips = [make_adjusted(0, 0, 0.0, 1.5, segment_duration=1.0), make_adjusted(1, 0, 1.0, 0.5)]
    out = build_speaker_track(clips, str(tmp_path / "out.wav"), workdir)
    assert measure_duration(out) == pytest.approx(2.0, abs=0.005)


def test_tiny_gap_not_filled(make_adjusted, workdir, tmp_path):
    clips = [make_adjusted(0, 0, 0.0, 1.0), make_adjusted(1, 0, 1.0005, 0.5)]
    out = build_speaker_track(clips, str(tmp_path / "out.wav"), workdir)
    assert measure_duration(out) == pytest.approx(1.5, abs=0.002)


def test_multi_speaker_overlay_length(make_adjusted, workdir, tmp_path):
    clips = [
        make_adjusted(0, 0, 0.0, 1.0),
        make_adjusted(1, 1, 0.5, 2.0),
        make_adjusted(2, 0, 1.2, 0.3),
    ]
    out = assemble(clips, str(tmp_path / "out.wav"), workdir)
    assert measure_duration(out) == pytest.approx(2.5, abs=0.005)


def test_temporary_files_removed(make_adjusted, workdir, tmp_path):
    clips = [make_adjusted(0, 0, 1.0, 0.5), make_adjusted(1, 1, 0.2, 0.5)]
    assemble(clips, str(tmp_path / "out.wav"), workdir)
    assert os.listdir(workdir) == []


def test_no_clips(workdir, tmp_path):
    target = str(tmp_path / "out.wav")
    assert assemble([], target, workdir) == target
    assert not os.path.exists(target)


def test_speakers_in_order(make_adjusted):
    clips = [make_adjusted(2, "b", 3.0, 0.1), make_adjusted(0, "a", 0.0, 0.1), make_adjusted(1, "b", 1.0, 0.1)]
    assert speakers_in_order(clips) == ["a", "b"]
