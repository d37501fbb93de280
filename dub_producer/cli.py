"""CLI interface with subcommand routing."""

import argparse
import logging
import os
import shutil
import sys

from dub_producer.artifacts import get_project_status, list_projects, write_artifact
from dub_producer.config import load_config
from dub_producer.constants import OUTPUT_DIR, VERSION
from dub_producer.errors import DubbingError
from dub_producer.pipeline import format_file, reassemble, run_project
from dub_producer.voices import VOICE_POOLS, load_voice_map


def _check_ffmpeg():
    """Verify ffmpeg is installed."""
    if not shutil.which("ffmpeg"):
        print("Error: ffmpeg is required but not found.", file=sys.stderr)
        print("Install with: brew install ffmpeg", file=sys.stderr)
        raise SystemExit(1)


def _require_file(path: str):
    if not os.path.exists(path):
        print(f"Error: File not found: {path}", file=sys.stderr)
        raise SystemExit(1)


def cmd_format(args):
    """Turn a transcription into segments.json."""
    _require_file(args.file)
    config = load_config(args.config)
    segments = format_file(args.file, args.language or "", config)

    output = args.output or os.path.join(os.path.dirname(args.file) or ".", "segments.json")
    write_artifact(os.path.dirname(output) or ".", os.path.basename(output), [s.to_dict() for s in segments])

    speakers = len({s.speaker for s in segments})
    print(f"Formatted {len(segments)} segments ({speakers} speaker(s))")
    print(f"Segments written to {output}")


def cmd_run(args):
    """Dub a segments file into the target language."""
    _check_ffmpeg()
    _require_file(args.segments)
    if args.voices:
        _require_file(args.voices)

    config = load_config(args.config)
    output_path = run_project(
        args.segments,
        args.target_language,
        config=config,
        voice_map=load_voice_map(args.voices),
        summary=args.summary or "",
        skip_translation=args.skip_translation,
        output_base=args.output_dir,
        output_path=args.output,
    )
    print(f"Done: {output_path}")


def cmd_assemble(args):
    """Rebuild the final track from an adjusted-clips manifest."""
    _require_file(args.manifest)
    config = load_config(args.config)
    output_path = reassemble(args.manifest, args.output, config)
    print(f"Done: {output_path}")


def cmd_status(args):
    """Show project status."""
    project_dir = os.path.join(args.output_dir, args.slug)
    if not os.path.isdir(project_dir):
        print(f"Error: Project '{args.slug}' not found.", file=sys.stderr)
        raise SystemExit(1)

    status = get_project_status(project_dir)
    print(f"Project: {args.slug}")
    print("Steps:")
    for step in ["format", "translate", "tts", "adapt", "export"]:
        info = status.get(step, {"state": "pending"})
        state = info["state"]
        marker = "[done]" if state == "done" else "[part]" if state == "partial" else "[----]"
        details = ""
        if state == "done" and "segments" in info:
            details = f" ({info['segments']} segments)"
        elif state == "done" and "files" in info:
            details = f" ({info['files']} files)"
        elif state == "partial":
            details = f" ({info['files']}/{info.get('expected', '?')} files)"
        print(f"  {marker} {step:<12}{details}")


def cmd_list(args):
    """List all projects."""
    projects = list_projects(output_base=args.output_dir)
    if not projects:
        print("No projects found.")
        return
    print("Projects:")
    for name in projects:
        status = get_project_status(os.path.join(args.output_dir, name))
        export_state = status.get("export", {}).get("state", "pending")
        marker = "[done]" if export_state == "done" else "[----]"
        print(f"  {marker} {name}")


def cmd_voices(args):
    """List available voices."""
    filter_str = args.filter.lower() if args.filter else None
    voices = [v for pool in VOICE_POOLS.values() for v in pool]
    if filter_str:
        voices = [v for v in voices if filter_str in v.lower()]
    if not voices:
        print("No matching voices found.")
        return
    print("Available voices:")
    for v in voices:
        print(f"  {v}")


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="dub-producer",
        description="Dub Producer: re-time translated speech onto the original timeline",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # format
    format_parser = subparsers.add_parser("format", help="Shape a transcription into segments")
    format_parser.add_argument("file", help="Transcription JSON file")
    format_parser.add_argument("-o", "--output", help="Where to write segments.json")
    format_parser.add_argument("--language", help="Source language (default: from the transcription)")
    format_parser.add_argument("--config", help="JSON config file")
    format_parser.set_defaults(func=cmd_format)

    # run
    run_parser = subparsers.add_parser("run", help="Translate, synthesize, re-time and assemble")
    run_parser.add_argument("segments", help="segments.json produced by 'format'")
    run_parser.add_argument("--target-language", required=True, help="Language to dub into")
    run_parser.add_argument("--voices", help="JSON file mapping speaker to voice id")
    run_parser.add_argument("--summary", help="Short description of the recording, passed as context")
    run_parser.add_argument("--skip-translation", action="store_true", help="Segments are already translated")
    run_parser.add_argument("--config", help="JSON config file")
    run_parser.add_argument("--output-dir", default=OUTPUT_DIR, help="Project output directory")
    run_parser.add_argument("-o", "--output", help="Also copy the final track here")
    run_parser.set_defaults(func=cmd_run)

    # assemble
    assemble_parser = subparsers.add_parser("assemble", help="Rebuild the track from adjusted clips")
    assemble_parser.add_argument("manifest", help="adjusted.json written by 'run'")
    assemble_parser.add_argument("-o", "--output", required=True, help="Output WAV path")
    assemble_parser.add_argument("--config", help="JSON config file")
    assemble_parser.set_defaults(func=cmd_assemble)

    # status
    status_parser = subparsers.add_parser("status", help="Show project status")
    status_parser.add_argument("slug", help="Project slug")
    status_parser.add_argument("--output-dir", default=OUTPUT_DIR, help="Project output directory")
    status_parser.set_defaults(func=cmd_status)

    # list
    list_parser = subparsers.add_parser("list", help="List all projects")
    list_parser.add_argument("--output-dir", default=OUTPUT_DIR, help="Project output directory")
    list_parser.set_defaults(func=cmd_list)

    # voices
    voices_parser = subparsers.add_parser("voices", help="List available voices")
    voices_parser.add_argument("--filter", help="Filter voices by substring")
    voices_parser.set_defaults(func=cmd_voices)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return

    try:
        args.func(args)
    except DubbingError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)
