"""Per-file and batch uploads over a shared TransferSession.

Batch operations attempt every input file and record an UploadOutcome for
each one; a failed push is logged and never shortens the batch.
"""

import ftplib
import logging
import posixpath
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from capturepipe.services.manifest_builder import CAPTURE_PATTERN, find_capture_files
from capturepipe.services.transfer_session import TransferError, TransferSession

logger = logging.getLogger(__name__)

# Remote name the manifest is always stored under
REMOTE_MANIFEST_NAME = "metadata.csv"


class UploadError(Exception):
    """Raised when a single file could not be pushed."""

    def __init__(self, local_path: Path, remote_path: str, reason: str):
        self.local_path = local_path
        self.remote_path = remote_path
        self.reason = reason
        super().__init__(f"Failed to upload {local_path} to {remote_path}: {reason}")


@dataclass(frozen=True)
class UploadOutcome:
    """Result of one push."""

    local_path: Path
    remote_path: str
    succeeded: bool
    reason: Optional[str] = None


def remote_path_for(upload_dir: str, local_path: Path | str) -> str:
    """Join the remote upload directory with the file's base name."""
    return posixpath.join(upload_dir, Path(local_path).name)


def upload_file(session: TransferSession, local_path: Path | str, remote_path: str) -> None:
    """Push one local file to remote_path.

    The local file is closed on every exit path, including a failed store.

    Raises:
        UploadError: Wrapping the open or store failure
    """
    local_path = Path(local_path)
    try:
        with open(local_path, "rb") as f:
            session.store(f, remote_path)
    except (OSError, EOFError, ftplib.Error, TransferError) as e:
        raise UploadError(local_path, remote_path, str(e)) from e


def _push(session: TransferSession, local_path: Path, remote_path: str, label: str) -> UploadOutcome:
    try:
        upload_file(session, local_path, remote_path)
    except UploadError as e:
        logger.error(f"Failed to upload {label} '{local_path}': {e.reason}")
        return UploadOutcome(local_path, remote_path, succeeded=False, reason=e.reason)
    except Exception as e:
        reason = f"{type(e).__name__}: {e}"
        logger.error(f"Unexpected error uploading {label} '{local_path}': {reason}", exc_info=True)
        return UploadOutcome(local_path, remote_path, succeeded=False, reason=reason)

    logger.info(f"Uploaded {label} '{local_path}' -> {remote_path}")
    return UploadOutcome(local_path, remote_path, succeeded=True)


def upload_captures(
    session: TransferSession,
    capture_dir: Path | str,
    upload_dir: str,
    pacing: float = 0.0,
    pattern: str = CAPTURE_PATTERN,
    sleep: Callable[[float], None] = time.sleep,
) -> list[UploadOutcome]:
    """Upload every capture file in capture_dir, one at a time.

    Files are pushed in sorted filename order. After each push, successful
    or not, waits pacing seconds to throttle the upload rate.

    Args:
        session: Established transfer session
        capture_dir: Local directory holding capture files
        upload_dir: Remote directory to upload into
        pacing: Seconds to wait after each push
        pattern: Glob pattern selecting capture files
        sleep: Wait function (injectable for tests)

    Returns:
        One UploadOutcome per matched file, in upload order
    """
    logger.info("Uploading captures...")
    capture_files = find_capture_files(capture_dir, pattern)
    if not capture_files:
        logger.warning(f"No capture files found in {capture_dir} to upload")

    outcomes = []
    for capture in capture_files:
        outcomes.append(
            _push(session, capture, remote_path_for(upload_dir, capture), "capture file")
        )
        if pacing > 0:
            sleep(pacing)

    failed = sum(1 for o in outcomes if not o.succeeded)
    logger.info(
        f"Capture upload completed: {len(outcomes) - failed}/{len(outcomes)} succeeded"
    )
    return outcomes


def upload_manifest(
    session: TransferSession,
    manifest_path: Optional[Path | str],
    upload_dir: str,
) -> UploadOutcome:
    """Upload the manifest to <upload_dir>/metadata.csv.

    When manifest_path is None (no manifest was produced this run) nothing
    is pushed and a failed outcome is returned.
    """
    logger.info("Uploading manifest...")
    remote_path = posixpath.join(upload_dir, REMOTE_MANIFEST_NAME)

    if manifest_path is None:
        logger.warning("Skipping manifest upload: no manifest was generated")
        return UploadOutcome(
            Path(REMOTE_MANIFEST_NAME), remote_path, succeeded=False,
            reason="manifest not generated",
        )

    return _push(session, Path(manifest_path), remote_path, "manifest")
