"""
Shared test fixtures: settings builders, stub FTP clients and a fake ffmpeg.
"""

import ftplib
import os
import re
import subprocess
from pathlib import Path

import pytest

from capturepipe.config import Settings


# ============================================================================
# Settings
# ============================================================================

def build_settings(tmp_path: Path, **sections) -> Settings:
    """Build Settings rooted in tmp_path; keyword sections override defaults."""
    output_dir = tmp_path / "output"
    data = {
        "media": {"resolution": "320x240", "fps": 5, "duration": 2},
        "transfer": {
            "host": "ftp.test",
            "port": 2121,
            "username": "tester",
            "password": "secret",
            "upload_dir": "/upload",
            "max_retries": 3,
            "retry_interval": 0,
        },
        "storage": {
            "output_dir": str(output_dir),
            "artifact_path": str(output_dir / "video" / "test.mp4"),
            "capture_dir": str(output_dir / "captures"),
            "manifest_path": str(output_dir / "metadata.csv"),
        },
        "pipeline": {"capture_interval": 1, "upload_pacing": 0, "linger": 0},
        "logging": {"level": "DEBUG", "rich": False},
    }
    for name, values in sections.items():
        data[name] = {**data.get(name, {}), **values}
    return Settings(**data)


@pytest.fixture
def settings(tmp_path, monkeypatch):
    for key in list(os.environ):
        if key.startswith("CAPTUREPIPE_"):
            monkeypatch.delenv(key)
    return build_settings(tmp_path)


# ============================================================================
# Stub FTP clients
# ============================================================================

class StubFTPClient:
    """ftplib-compatible client recording every call.

    Args:
        server: Shared StubServer receiving stored files
        connect_error: Exception raised from connect()
        login_error: Exception raised from login()
    """

    def __init__(self, server, connect_error=None, login_error=None):
        self.server = server
        self.connect_error = connect_error
        self.login_error = login_error
        self.connected = False
        self.logged_in = False
        self.protected = False
        self.closed = False
        self.quit_called = False

    def connect(self, host, port, timeout=None):
        self.server.connect_calls.append((host, port, timeout))
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    def login(self, user, passwd):
        self.server.login_calls.append((user, passwd))
        if self.login_error is not None:
            raise self.login_error
        self.logged_in = True

    def prot_p(self):
        self.protected = True

    def storbinary(self, cmd, fp):
        remote_path = cmd.split(" ", 1)[1]
        self.server.store_calls.append(remote_path)
        error = self.server.store_errors.get(remote_path)
        if error is not None:
            raise error
        self.server.stored[remote_path] = fp.read()

    def quit(self):
        self.quit_called = True
        self.closed = True

    def close(self):
        self.closed = True


class StubServer:
    """Scripted client factory.

    script is a list of "ok", "connect" or "auth" entries, consumed one per
    connection attempt; once exhausted every further attempt succeeds.
    """

    def __init__(self, script=None):
        self.script = list(script or [])
        self.clients = []
        self.connect_calls = []
        self.login_calls = []
        self.store_calls = []
        self.store_errors = {}
        self.stored = {}

    def __call__(self):
        behaviour = self.script.pop(0) if self.script else "ok"
        client = StubFTPClient(
            self,
            connect_error=ConnectionRefusedError("connection refused") if behaviour == "connect" else None,
            login_error=ftplib.error_perm("530 Login incorrect.") if behaviour == "auth" else None,
        )
        self.clients.append(client)
        return client


class SleepRecorder:
    """Replacement for time.sleep recording requested waits."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def stub_server():
    return StubServer()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


# ============================================================================
# Fake ffmpeg
# ============================================================================

class FakeFFmpeg:
    """subprocess.run replacement that writes the files ffmpeg would."""

    def __init__(self, duration: int, fail_synthesis=False, fail_extraction=False):
        self.duration = duration
        self.fail_synthesis = fail_synthesis
        self.fail_extraction = fail_extraction
        self.commands = []

    def __call__(self, command, check=False, capture_output=False):
        self.commands.append(command)
        if "lavfi" in command:
            if self.fail_synthesis:
                raise subprocess.CalledProcessError(1, command, stderr=b"testsrc: boom")
            Path(command[-1]).write_bytes(b"fake video")
        else:
            if self.fail_extraction:
                raise subprocess.CalledProcessError(1, command, stderr=b"no input")
            interval = int(re.search(r"fps=1/(\d+)", " ".join(command)).group(1))
            write_captures(Path(command[-1]).parent, self.duration // interval)
        return subprocess.CompletedProcess(command, 0, b"", b"")


def write_captures(capture_dir: Path, count: int, base_mtime: float = 1_700_000_000.0) -> list[Path]:
    """Create capture001.jpg.. with distinct, increasing modification times."""
    capture_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for i in range(1, count + 1):
        path = capture_dir / f"capture{i:03d}.jpg"
        path.write_bytes(f"jpeg-{i}".encode())
        os.utime(path, (base_mtime + i, base_mtime + i))
        paths.append(path)
    return paths
