"""Capture manifest generation.

Writes a CSV listing each capture file's name and modification time:

    Filename,Creation Time
    capture001.jpg,2026-10-18 12:00:01.000000 +0200
    ...

Rows follow sorted filename order, which is also the order the upload
stage pushes files in.
"""

import csv
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CAPTURE_PATTERN = "capture*.jpg"
MANIFEST_HEADER = ("Filename", "Creation Time")


@dataclass(frozen=True)
class ManifestRecord:
    """One manifest row."""

    filename: str
    created_at: str


def format_timestamp(mtime: float) -> str:
    """Format a filesystem mtime as a local-time string with UTC offset."""
    return datetime.fromtimestamp(mtime).astimezone().strftime("%Y-%m-%d %H:%M:%S.%f %z")


def find_capture_files(capture_dir: Path | str, pattern: str = CAPTURE_PATTERN) -> list[Path]:
    """Return capture files in capture_dir sorted by filename."""
    capture_dir = Path(capture_dir)
    if not capture_dir.is_dir():
        return []
    return sorted(p for p in capture_dir.glob(pattern) if p.is_file())


def collect_capture_records(
    capture_dir: Path | str, pattern: str = CAPTURE_PATTERN
) -> list[ManifestRecord]:
    """Build manifest records for every capture file.

    Files whose metadata cannot be read are logged and skipped.
    """
    records = []
    for path in find_capture_files(capture_dir, pattern):
        try:
            mtime = path.stat().st_mtime
        except OSError as e:
            logger.warning(f"Failed to retrieve file info for '{path}': {e}")
            continue
        records.append(ManifestRecord(filename=path.name, created_at=format_timestamp(mtime)))
    return records


def write_manifest(records: list[ManifestRecord], manifest_path: Path | str) -> Path:
    """Write records to manifest_path, replacing any existing file."""
    manifest_path = Path(manifest_path)
    manifest_path.parent.mkdir(parents=True, exist_ok=True)

    with open(manifest_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(MANIFEST_HEADER)
        writer.writerows((r.filename, r.created_at) for r in records)

    return manifest_path


def read_manifest(manifest_path: Path | str) -> list[ManifestRecord]:
    """Parse a manifest written by write_manifest.

    Raises:
        ValueError: If the header row is missing or does not match, or a
            data row does not have exactly two fields
    """
    with open(manifest_path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))

    if not rows or tuple(rows[0]) != MANIFEST_HEADER:
        raise ValueError(f"{manifest_path} is not a capture manifest (bad header)")

    records = []
    for row_number, row in enumerate(rows[1:], start=1):
        if not row:
            continue
        if len(row) != len(MANIFEST_HEADER):
            raise ValueError(
                f"{manifest_path} row {row_number}: expected {len(MANIFEST_HEADER)} fields, "
                f"got {len(row)}"
            )
        records.append(ManifestRecord(filename=row[0], created_at=row[1]))
    return records


def build_manifest(
    capture_dir: Path | str,
    manifest_path: Path | str,
    pattern: str = CAPTURE_PATTERN,
) -> Optional[Path]:
    """Generate the manifest for the captures in capture_dir.

    Returns:
        The manifest path, or None when no capture files exist (in which
        case nothing is written and a warning is logged)
    """
    logger.info("Generating manifest...")
    records = collect_capture_records(capture_dir, pattern)

    if not records:
        logger.warning(f"No capture files found in {capture_dir}; skipping manifest generation")
        return None

    path = write_manifest(records, manifest_path)
    logger.info(f"Manifest generation completed: {len(records)} captures -> {path}")
    return path
