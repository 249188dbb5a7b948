"""Synthetic test video generation with ffmpeg.

Renders ffmpeg's lavfi testsrc pattern at the configured resolution, frame
rate and duration, with the local wall-clock time drawn near the bottom of
every frame.
"""

import logging
import subprocess
from pathlib import Path

from capturepipe.config import MediaConfig, Settings

logger = logging.getLogger(__name__)


def build_synthesis_command(media: MediaConfig, artifact_path: Path) -> list[str]:
    """Build the ffmpeg argv that renders the test video.

    Args:
        media: Resolution, frame rate, duration and overlay font
        artifact_path: Output video file

    Returns:
        Argument list for subprocess
    """
    source = f"testsrc=duration={media.duration}:size={media.resolution}:rate={media.fps}"
    overlay = (
        f"drawtext=fontfile='{media.overlay_font}':text='%{{localtime}}':"
        "x=(w-tw)/2:y=h-(2*lh):fontcolor=white:fontsize=12:"
        "box=1:boxcolor=black@0.5"
    )
    return [
        "ffmpeg",
        "-y",  # Overwrite output file
        "-f",
        "lavfi",
        "-i",
        source,
        "-vf",
        overlay,
        str(artifact_path),
    ]


def synthesize_artifact(settings: Settings, runner=subprocess.run) -> bool:
    """Render the test video to settings.storage.artifact_path.

    Failures are logged and reported through the return value; they never
    raise, so downstream stages can run on whatever output exists.

    Args:
        settings: Application settings
        runner: subprocess.run-compatible callable

    Returns:
        True if ffmpeg completed successfully
    """
    artifact_path = settings.storage.artifact_path
    logger.info(f"Generating test video -> {artifact_path}")

    try:
        artifact_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Failed to create directory '{artifact_path.parent}': {e}")
        return False

    command = build_synthesis_command(settings.media, artifact_path)
    try:
        runner(command, check=True, capture_output=True)
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.decode(errors="replace") if e.stderr else "No error output"
        logger.error(f"Failed to generate test video: ffmpeg exited {e.returncode}: {stderr[-500:]}")
        return False
    except FileNotFoundError as e:
        logger.error(f"Failed to generate test video: {e}")
        return False

    logger.info("Test video generation completed.")
    return True
