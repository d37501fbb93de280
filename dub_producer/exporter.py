"""Export the assembled timeline as WAV with a provenance manifest."""

import logging
import os
import shutil
from datetime import datetime, timezone

from dub_producer.artifacts import write_artifact
from dub_producer.constants import VERSION
from dub_producer.duration import estimate_duration
from dub_producer.errors import AudioUtilityError
from dub_producer.models import AdjustedClip

logger = logging.getLogger(__name__)


def publish(source_path: str, output_path: str) -> str:
    """Copy a finished file to output_path under a temporary name, then rename.

    The destination only ever holds a complete file.
    """
    if not os.path.exists(source_path) or os.path.getsize(source_path) == 0:
        raise AudioUtilityError(f"File not found: {source_path}")
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    tmp_path = output_path + ".part"
    try:
        shutil.copyfile(source_path, tmp_path)
        os.replace(tmp_path, output_path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
    return output_path


def export(
    assembled_path: str,
    project_dir: str,
    slug: str,
    clips: list[AdjustedClip],
    voice_map: dict,
    settings: dict,
    source: str = "",
) -> str:
    """Move the assembled track into place and describe how it was made.

    Creates:
      - <project_dir>/final/<slug>.wav (the dubbed track)
      - <project_dir>/final/output.json (provenance manifest)

    Returns the path of the exported track.
    """
    final_dir = os.path.join(project_dir, "final")
    os.makedirs(final_dir, exist_ok=True)
    output_path = os.path.join(final_dir, f"{slug}.wav")

    publish(assembled_path, output_path)

    expected = max((c.begin + c.duration for c in clips), default=0.0)
    manifest = {
        "project": slug,
        "source": source,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "producer_version": VERSION,
        "voices": voice_map,
        "settings": settings,
        "segments": [
            {
                "index": c.index,
                "speaker": c.speaker,
                "begin": c.begin,
                "end": c.end,
                "duration": round(c.duration, 3),
                "speed_factor": round(c.speed_factor, 4),
                "rounds": c.rounds,
                "text": c.text,
            }
            for c in sorted(clips, key=lambda c: c.index)
        ],
        "stats": {
            "segments": len(clips),
            "speakers": len({c.speaker for c in clips}),
            "duration_seconds": round(estimate_duration(output_path, expected), 1),
            "reformulated": sum(1 for c in clips if c.rounds),
        },
    }
    write_artifact(final_dir, "output.json", manifest)
    logger.debug("Exported %s", output_path)
    return output_path
