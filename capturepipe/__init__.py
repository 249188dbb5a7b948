"""Capture Pipeline - synthetic video test data generation and FTPS delivery."""

import logging
import subprocess

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

FFMPEG_BINARY = "ffmpeg"


def validate_dependencies() -> str:
    """Check that ffmpeg runs and return the first line of its version banner.

    Test video synthesis and capture extraction both shell out to ffmpeg.
    `capturepipe run` calls this first and downgrades a failure to a warning.

    Raises:
        RuntimeError: If ffmpeg is missing from PATH or `ffmpeg -version` fails
    """
    try:
        completed = subprocess.run(
            [FFMPEG_BINARY, "-version"], capture_output=True, check=True, text=True
        )
    except FileNotFoundError as e:
        raise RuntimeError(
            f"{FFMPEG_BINARY} not found on PATH; the test video and captures "
            "cannot be generated without it"
        ) from e
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"'{FFMPEG_BINARY} -version' exited with status {e.returncode}") from e

    banner = completed.stdout.splitlines()[0] if completed.stdout else FFMPEG_BINARY
    logger.debug(f"Using {banner}")
    return banner
