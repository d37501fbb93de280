"""Pipeline orchestration: translate, synthesize, adapt, assemble, export."""

import asyncio
import logging
import os
import tempfile

from dub_producer.adaptation import adapt_all, collect_clips
from dub_producer.artifacts import init_output_dir, load_artifact, slug_from_path, write_artifact
from dub_producer.assembly import assemble, speakers_in_order
from dub_producer.config import SyncConfig
from dub_producer.constants import OUTPUT_DIR
from dub_producer.errors import InputValidationError
from dub_producer.exporter import export, publish
from dub_producer.formatter import format_transcription, load_utterances
from dub_producer.models import AdjustedClip, Segment
from dub_producer.rewrite import OpenAIRewriter, translate_segments
from dub_producer.tts import EdgeTTSSynthesizer, synthesize_all
from dub_producer.voices import assign_voices

logger = logging.getLogger(__name__)


def format_file(transcript_path: str, language: str = "", config: SyncConfig | None = None) -> list[Segment]:
    """Read a transcription file and shape it into segments."""
    utterances = load_utterances(transcript_path)
    if not language:
        language = next((u.language for u in utterances if u.language), "")
    return format_transcription(utterances, language, config)


def load_segments(path: str) -> list[Segment]:
    """Read segments.json, either a bare list or {"segments": [...]}."""
    data = load_artifact(os.path.dirname(path) or ".", os.path.basename(path))
    if isinstance(data, dict):
        data = data.get("segments")
    if not data:
        raise InputValidationError(f"No segments found in {path}")
    return sorted((Segment.from_dict(s) for s in data), key=lambda s: s.index)


def load_clip_manifest(path: str) -> list[AdjustedClip]:
    """Read an adjusted-clips manifest (bare list or {"clips": [...]})."""
    data = load_artifact(os.path.dirname(path) or ".", os.path.basename(path))
    if isinstance(data, dict):
        data = data.get("clips")
    if not data:
        raise InputValidationError(f"No clips found in {path}")
    return [AdjustedClip.from_dict(c) for c in data]


async def dub(
    segments: list[Segment],
    target_language: str,
    voice_map: dict,
    synthesizer,
    rewriter,
    workdir: str,
    config: SyncConfig | None = None,
    summary: str = "",
    skip_translation: bool = False,
    project_dir: str | None = None,
) -> tuple[list[AdjustedClip], str]:
    """Run every step after formatting and return (clips, timeline path).

    Raises if any segment could not be adapted; nothing is assembled then.
    """
    config = config or SyncConfig()
    source_language = next((s.language for s in segments if s.language), "")

    if skip_translation:
        translated = sorted(segments, key=lambda s: s.index)
    else:
        print(f"Translating {len(segments)} segments into {target_language}...")
        translated = await translate_segments(segments, rewriter, target_language, summary, config)
        if project_dir:
            write_artifact(project_dir, "translated.json", [s.to_dict() for s in translated])

    print(f"Generating speech for {len(translated)} segments...")
    clips = await synthesize_all(translated, voice_map, synthesizer, config)

    print("Adapting timing...")
    adjusted_dir = os.path.join(project_dir, "adjusted") if project_dir else workdir
    outcomes = await adapt_all(
        translated, clips, voice_map, synthesizer, rewriter, config,
        target_language=target_language,
        source_language=source_language,
        summary=summary,
        output_dir=adjusted_dir,
    )
    adjusted = collect_clips(outcomes)
    if project_dir:
        write_artifact(project_dir, "adjusted.json", {"clips": [c.to_dict() for c in adjusted]})

    print(f"Assembling {len(adjusted)} clips ({len(speakers_in_order(adjusted))} speaker(s))...")
    timeline = os.path.join(workdir, "timeline.wav")
    await asyncio.to_thread(assemble, adjusted, timeline, workdir, config)
    return adjusted, timeline


def run_project(
    segments_path: str,
    target_language: str,
    config: SyncConfig | None = None,
    voice_map: dict | None = None,
    summary: str = "",
    skip_translation: bool = False,
    output_base: str | None = None,
    output_path: str | None = None,
    synthesizer=None,
    rewriter=None,
) -> str:
    """Dub a segments file end to end and return the exported track path.

    Intermediate audio lives in a temporary directory removed on every exit
    path; the final track only appears once assembly has succeeded.
    """
    config = config or SyncConfig()
    segments = load_segments(segments_path)
    slug = slug_from_path(segments_path)
    project_dir = init_output_dir(segments_path, output_base or OUTPUT_DIR)
    write_artifact(project_dir, "segments.json", [s.to_dict() for s in segments])

    voices = assign_voices(speakers_in_order(segments), target_language, voice_map)
    for speaker, voice in voices.items():
        logger.info("Speaker %s -> %s", speaker, voice)

    synthesizer = synthesizer or EdgeTTSSynthesizer(os.path.join(project_dir, "clips"), config)
    rewriter = rewriter or OpenAIRewriter(config)

    with tempfile.TemporaryDirectory(prefix="dub-") as workdir:
        adjusted, timeline = asyncio.run(dub(
            segments, target_language, voices, synthesizer, rewriter, workdir, config,
            summary=summary,
            skip_translation=skip_translation,
            project_dir=project_dir,
        ))
        settings = {
            "target_language": target_language,
            "skip_translation": skip_translation,
            "config": config.to_dict(),
        }
        final_path = export(
            timeline, project_dir, slug, adjusted, voices, settings,
            source=os.path.abspath(segments_path),
        )

    if output_path:
        return publish(final_path, output_path)
    return final_path


def reassemble(manifest_path: str, output_path: str, config: SyncConfig | None = None) -> str:
    """Rebuild a timeline from already adjusted clips."""
    clips = load_clip_manifest(manifest_path)
    with tempfile.TemporaryDirectory(prefix="dub-") as workdir:
        timeline = assemble(clips, os.path.join(workdir, "timeline.wav"), workdir, config)
        return publish(timeline, output_path)
