"""Project directory layout and JSON artifacts between pipeline steps."""

import json
import os
import re

from dub_producer.constants import OUTPUT_DIR

PROJECT_SUBDIRS = ["clips", "adjusted", "final"]


def slug_from_path(source_path: str) -> str:
    """Convert a source filename to an output directory slug.

    "My Interview.json" → "my_interview"
    "/path/to/Episode 01.segments.json" → "episode_01_segments"
    """
    basename = os.path.splitext(os.path.basename(source_path))[0]
    slug = re.sub(r"[^a-zA-Z0-9]+", "_", basename).strip("_").lower()
    return slug


def init_output_dir(source_path: str, output_base: str = OUTPUT_DIR) -> str:
    """Create output/<slug>/ and its subdirectories.

    Returns the project directory path.
    """
    project_dir = os.path.join(output_base, slug_from_path(source_path))
    for subdir in PROJECT_SUBDIRS:
        os.makedirs(os.path.join(project_dir, subdir), exist_ok=True)
    return project_dir


def write_artifact(project_dir: str, filename: str, data: dict | list) -> str:
    """Write JSON artifact to project_dir/filename.

    The file is written under a temporary name and moved into place so a
    crash never leaves a truncated artifact behind. Returns the path.
    """
    os.makedirs(project_dir, exist_ok=True)
    path = os.path.join(project_dir, filename)
    tmp_path = path + ".tmp"
    with open(tmp_path, "w") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    os.replace(tmp_path, path)
    return path


def load_artifact(project_dir: str, filename: str) -> dict | list | None:
    """Read JSON artifact. Returns None if file doesn't exist."""
    path = os.path.join(project_dir, filename)
    if not os.path.exists(path):
        return None
    with open(path) as f:
        return json.load(f)


def get_project_status(project_dir: str) -> dict:
    """Return dict describing current state of each pipeline step."""
    status = {}

    segments = load_artifact(project_dir, "segments.json")
    if segments is not None:
        status["format"] = {"state": "done", "segments": len(segments)}
    else:
        status["format"] = {"state": "pending"}

    translated = load_artifact(project_dir, "translated.json")
    status["translate"] = {"state": "done" if translated is not None else "pending"}

    expected = status["format"].get("segments", 0)
    adjusted = load_artifact(project_dir, "adjusted.json")
    for step, subdir in (("tts", "clips"), ("adapt", "adjusted")):
        path = os.path.join(project_dir, subdir)
        wavs = [f for f in os.listdir(path) if f.endswith(".wav")] if os.path.isdir(path) else []
        if adjusted is not None:
            # Raw clips are consumed by adaptation; the manifest records the result.
            status[step] = {"state": "done", "files": len(adjusted.get("clips", []))}
        elif not wavs:
            status[step] = {"state": "pending"}
        elif expected and len(wavs) >= expected:
            status[step] = {"state": "done", "files": len(wavs)}
        else:
            status[step] = {"state": "partial", "files": len(wavs), "expected": expected}

    final_dir = os.path.join(project_dir, "final")
    has_final = os.path.isdir(final_dir) and any(f.endswith(".wav") for f in os.listdir(final_dir))
    status["export"] = {"state": "done" if has_final else "pending"}

    return status


def list_projects(output_base: str = OUTPUT_DIR) -> list[str]:
    """List project slugs under the output directory that hold segments.json."""
    if not os.path.exists(output_base):
        return []
    projects = []
    for name in os.listdir(output_base):
        if os.path.exists(os.path.join(output_base, name, "segments.json")):
            projects.append(name)
    return sorted(projects)
