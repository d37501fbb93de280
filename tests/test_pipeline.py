"""Integration tests: the whole pipeline with fake collaborators."""

import json
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from dub_producer.artifacts import get_project_status
from dub_producer.audio import measure_duration
from dub_producer.config import SyncConfig
from dub_producer.errors import DubbingError, InputValidationError, RewriteError
from dub_producer.models import SpeechClip
from dub_producer.pipeline import format_file, load_segments, reassemble, run_project
from conftest import loud_audio


class ScriptedSynthesizer:
    """Writes real WAVs whose length is scripted per segment index."""

    def __init__(self, directory, durations):
        self.directory = directory
        self.durations = durations
        self.calls = []
        os.makedirs(directory, exist_ok=True)

    async def synthesize(self, text, voice, index, speaker=0, previous_text="", next_text="", speed_hint=None):
        self.calls.append((index, text, voice))
        path = os.path.join(self.directory, f"{index:03d}_{len(self.calls)}.wav")
        duration = self.durations[index]
        loud_audio(int(round(duration * 1000))).export(path, format="wav")
        return SpeechClip(index=index, speaker=speaker, path=path, duration=duration, text=text)


def _rewriter():
    rewriter = MagicMock()

    async def translate(text, *args, **kwargs):
        return f"[en] {text}"

    rewriter.translate = translate
    return rewriter


@pytest.fixture
def segments_file(tmp_path, sample_segments):
    path = tmp_path / "interview.json"
    path.write_text(json.dumps([s.to_dict() for s in sample_segments]))
    return str(path)


def test_run_project_end_to_end(tmp_path, segments_file, sample_segments):
    durations = {s.index: s.duration for s in sample_segments}
    synth = ScriptedSynthesizer(str(tmp_path / "synth"), durations)
    output_base = str(tmp_path / "output")

    final = run_project(
        segments_file, "english",
        config=SyncConfig(tts_retry_delay=0),
        output_base=output_base,
        synthesizer=synth,
        rewriter=_rewriter(),
    )

    project_dir = os.path.join(output_base, "interview")
    assert final == os.path.join(project_dir, "final", "interview.wav")
    # Speaker 0 ends last, at 8.0s.
    assert measure_duration(final) == pytest.approx(8.0, abs=0.01)

    translated = json.load(open(os.path.join(project_dir, "translated.json")))
    assert translated[0]["text"] == "[en] Bonjour à tous."
    assert translated[0]["original_text"] == "Bonjour à tous."
    adjusted = json.load(open(os.path.join(project_dir, "adjusted.json")))
    assert [c["index"] for c in adjusted["clips"]] == [0, 1, 2, 3]
    manifest = json.load(open(os.path.join(project_dir, "final", "output.json")))
    assert manifest["stats"]["speakers"] == 2
    # Two speakers, two distinct English voices.
    assert len({v for _, _, v in synth.calls}) == 2


def test_run_project_copies_to_output_path(tmp_path, segments_file, sample_segments):
    durations = {s.index: s.duration for s in sample_segments}
    out = str(tmp_path / "dubbed.wav")
    result = run_project(
        segments_file, "english",
        skip_translation=True,
        output_base=str(tmp_path / "output"),
        output_path=out,
        synthesizer=ScriptedSynthesizer(str(tmp_path / "synth"), durations),
        rewriter=_rewriter(),
    )
    assert result == out
    assert os.path.exists(out)
    assert not os.path.exists(tmp_path / "output" / "interview" / "translated.json")


def test_run_project_failed_segment_leaves_no_output(tmp_path, segments_file, sample_segments):
    durations = {s.index: s.duration for s in sample_segments}
    durations[1] = durations[1] * 1.5
    rewriter = _rewriter()
    rewriter.shorten = AsyncMock(side_effect=RewriteError("quota exceeded"))

    with pytest.raises(DubbingError, match="quota exceeded"):
        run_project(
            segments_file, "english",
            output_base=str(tmp_path / "output"),
            synthesizer=ScriptedSynthesizer(str(tmp_path / "synth"), durations),
            rewriter=rewriter,
        )
    final_dir = tmp_path / "output" / "interview" / "final"
    assert not any(final_dir.iterdir())


def test_reassemble_from_manifest(tmp_path, segments_file, sample_segments):
    durations = {s.index: s.duration for s in sample_segments}
    run_project(
        segments_file, "english",
        skip_translation=True,
        output_base=str(tmp_path / "output"),
        synthesizer=ScriptedSynthesizer(str(tmp_path / "synth"), durations),
        rewriter=_rewriter(),
    )
    manifest = str(tmp_path / "output" / "interview" / "adjusted.json")
    out = reassemble(manifest, str(tmp_path / "again.wav"))
    assert measure_duration(out) == pytest.approx(8.0, abs=0.01)


def test_load_segments_empty(tmp_path):
    path = tmp_path / "segments.json"
    path.write_text("[]")
    with pytest.raises(InputValidationError):
        load_segments(str(path))


def test_format_file_detects_language(tmp_path):
    path = tmp_path / "transcript.json"
    path.write_text(json.dumps({"utterances": [
        {"text": "Hola.", "start": 0.0, "end": 1.0, "speaker": 0, "language": "es"},
        {"text": "¿Qué tal?", "start": 1.2, "end": 2.0, "speaker": 0, "language": "es"},
    ]}))
    segments = format_file(str(path))
    assert len(segments) == 1
    assert segments[0].language == "es"
    assert segments[0].text == "Hola. ¿Qué tal?"


def _fake_mp3_to_wav(mp3_path, wav_path, frame_rate):
    os.replace(mp3_path, wav_path)


@patch("dub_producer.tts._mp3_to_wav", side_effect=_fake_mp3_to_wav)
@patch("dub_producer.tts.edge_tts.Communicate")
def test_rerun_does_not_grow_clips(mock_comm, mock_convert, tmp_path, segments_file, sample_segments):
    """Clips fitting their segment exactly; each run writes the same names."""
    durations = {s.text: s.duration for s in sample_segments}

    def communicate(text, voice, **kwargs):
        mock = MagicMock()

        async def save(path):
            loud_audio(int(round(durations[text] * 1000))).export(path, format="wav")
        mock.save = save
        return mock

    mock_comm.side_effect = communicate
    output_base = str(tmp_path / "output")
    clips_dir = tmp_path / "output" / "interview" / "clips"

    counts = []
    for _ in range(3):
        run_project(
            segments_file, "english",
            skip_translation=True,
            output_base=output_base,
            rewriter=_rewriter(),
        )
        counts.append(len(list(clips_dir.glob("*.wav"))))

    assert counts == [4, 4, 4]
    status = get_project_status(os.path.join(output_base, "interview"))
    assert status["tts"] == {"state": "done", "files": 4}
