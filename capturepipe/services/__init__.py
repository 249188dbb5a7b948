"""Remote transfer and manifest services.

Usage:
    from capturepipe.services import TransferSession, upload_captures

    with TransferSession.from_config(settings.transfer) as session:
        session.establish(settings.transfer.max_retries, settings.transfer.retry_interval)
        outcomes = upload_captures(session, capture_dir, settings.transfer.upload_dir)
"""

from capturepipe.services.manifest_builder import ManifestRecord, build_manifest, read_manifest
from capturepipe.services.transfer_session import (
    SessionEstablishmentError,
    TransferError,
    TransferSession,
)
from capturepipe.services.uploader import (
    UploadError,
    UploadOutcome,
    upload_captures,
    upload_file,
    upload_manifest,
)

__all__ = [
    "ManifestRecord",
    "SessionEstablishmentError",
    "TransferError",
    "TransferSession",
    "UploadError",
    "UploadOutcome",
    "build_manifest",
    "read_manifest",
    "upload_captures",
    "upload_file",
    "upload_manifest",
]
