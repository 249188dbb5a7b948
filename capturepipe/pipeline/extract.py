"""Periodic still capture extraction with ffmpeg.

Samples one frame every capture_interval seconds from the synthesized video
and writes them as capture001.jpg, capture002.jpg, ... into the capture
directory.
"""

import logging
import subprocess
from pathlib import Path

from capturepipe.config import Settings

logger = logging.getLogger(__name__)

# ffmpeg image2 muxer output pattern; matches manifest_builder.CAPTURE_PATTERN
CAPTURE_FILENAME_TEMPLATE = "capture%03d.jpg"


def build_extraction_command(artifact_path: Path, capture_dir: Path, interval: int) -> list[str]:
    """Build the ffmpeg argv that samples one frame per interval seconds."""
    return [
        "ffmpeg",
        "-y",
        "-i",
        str(artifact_path),
        "-vf",
        f"fps=1/{interval}",
        str(capture_dir / CAPTURE_FILENAME_TEMPLATE),
    ]


def extract_captures(settings: Settings, runner=subprocess.run) -> bool:
    """Extract still captures from the synthesized video.

    Args:
        settings: Application settings
        runner: subprocess.run-compatible callable

    Returns:
        True if ffmpeg completed successfully
    """
    capture_dir = settings.storage.capture_dir
    logger.info(f"Generating captures -> {capture_dir}")

    try:
        capture_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Failed to create directory '{capture_dir}': {e}")
        return False

    command = build_extraction_command(
        settings.storage.artifact_path, capture_dir, settings.pipeline.capture_interval
    )
    try:
        runner(command, check=True, capture_output=True)
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.decode(errors="replace") if e.stderr else "No error output"
        logger.error(f"Failed to generate captures: ffmpeg exited {e.returncode}: {stderr[-500:]}")
        return False
    except FileNotFoundError as e:
        logger.error(f"Failed to generate captures: {e}")
        return False

    logger.info("Capture generation completed.")
    return True
