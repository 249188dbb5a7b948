"""Authenticated FTPS session with bounded-retry establishment.

A TransferSession owns a single control connection to the remote endpoint.
Establishment is retried a fixed number of times with a constant wait
between attempts; every failed attempt releases the connection it opened
before the next one starts. Once connected, store() may be called from
several threads and is serialized so only one transfer is in flight per
session.
"""

import ftplib
import logging
import threading
import time
from enum import Enum
from typing import BinaryIO, Callable, Optional

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from capturepipe.config import TransferConfig

logger = logging.getLogger(__name__)

# Transport-level timeout for each connection attempt, in seconds
DEFAULT_CONNECT_TIMEOUT = 5.0


class TransferError(Exception):
    """Base class for remote transfer failures."""


class TransportError(TransferError):
    """Raised when the control connection cannot be opened."""


class AuthenticationError(TransferError):
    """Raised when the server rejects the credentials."""


class SessionNotConnectedError(TransferError):
    """Raised when a transfer is requested on a session that is not connected."""


class SessionEstablishmentError(TransferError):
    """Raised when every connection attempt has failed."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        message = f"failed to establish transfer session after {attempts} attempts"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


def default_client_factory(use_tls: bool = True) -> Callable[[], ftplib.FTP]:
    """Return a factory producing unconnected ftplib clients."""
    if use_tls:
        return ftplib.FTP_TLS
    return ftplib.FTP


class TransferSession:
    """Owns the authenticated connection to the remote transfer endpoint.

    Args:
        host: Remote hostname
        port: Remote control port
        username: Login user
        password: Login password
        connect_timeout: Per-attempt transport timeout in seconds
        client_factory: Zero-argument callable returning an unconnected
            ftplib-compatible client (connect/login/storbinary/quit/close).
            Defaults to ftplib.FTP_TLS.
        sleep: Wait function used between attempts
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        client_factory: Optional[Callable[[], ftplib.FTP]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.host = host
        self.port = port
        self.username = username
        self._password = password
        self.connect_timeout = connect_timeout
        self._client_factory = client_factory or default_client_factory(True)
        self._sleep = sleep
        self._client: Optional[ftplib.FTP] = None
        self._lock = threading.Lock()
        self.state = SessionState.DISCONNECTED
        self.attempts_made = 0

    @classmethod
    def from_config(
        cls,
        config: TransferConfig,
        client_factory: Optional[Callable[[], ftplib.FTP]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "TransferSession":
        return cls(
            host=config.host,
            port=config.port,
            username=config.username,
            password=config.password,
            connect_timeout=config.connect_timeout,
            client_factory=client_factory or default_client_factory(config.use_tls),
            sleep=sleep,
        )

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def is_connected(self) -> bool:
        return self.state is SessionState.CONNECTED

    def establish(self, max_attempts: int, retry_interval: float) -> None:
        """Connect and authenticate, retrying up to max_attempts times.

        Waits retry_interval seconds between failed attempts. No wait
        follows the final attempt, and a successful attempt returns
        immediately without consuming the remaining budget.

        Args:
            max_attempts: Total attempts allowed (>= 1)
            retry_interval: Seconds to wait between attempts (0 disables)

        Raises:
            ValueError: If max_attempts < 1 or retry_interval < 0
            TransferError: If the session is already connected
            SessionEstablishmentError: If every attempt failed
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        if retry_interval < 0:
            raise ValueError(f"retry_interval must be >= 0, got {retry_interval}")
        if self.is_connected:
            raise TransferError(f"Session to {self.address} is already established")

        logger.info(f"Establishing transfer session to {self.address} (max {max_attempts} attempts)")
        self.attempts_made = 0

        retrying = Retrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_fixed(retry_interval),
            retry=retry_if_exception_type(TransferError),
            sleep=self._sleep,
        )
        try:
            for attempt in retrying:
                with attempt:
                    self.attempts_made = attempt.retry_state.attempt_number
                    self._attempt(self.attempts_made, max_attempts)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            raise SessionEstablishmentError(max_attempts, last_error) from last_error

        logger.info(
            f"Transfer session to {self.address} established "
            f"after {self.attempts_made} attempt(s)"
        )

    def _attempt(self, attempt_number: int, max_attempts: int) -> None:
        """Run one connect+login attempt, releasing the client on failure."""
        client = self._client_factory()

        try:
            client.connect(self.host, self.port, timeout=self.connect_timeout)
        except ftplib.all_errors as e:
            logger.warning(
                f"Failed to connect to {self.address}, "
                f"attempt {attempt_number}/{max_attempts}: {e}"
            )
            _release(client)
            raise TransportError(str(e)) from e

        try:
            client.login(self.username, self._password)
            # Encrypt the data channel as well as the control channel
            if hasattr(client, "prot_p"):
                client.prot_p()
        except ftplib.all_errors as e:
            logger.warning(
                f"Failed to authenticate to {self.address}, "
                f"attempt {attempt_number}/{max_attempts}: {e}"
            )
            _release(client)
            raise AuthenticationError(str(e)) from e

        self._client = client
        self.state = SessionState.CONNECTED

    def store(self, fileobj: BinaryIO, remote_path: str) -> None:
        """Upload the contents of fileobj to remote_path.

        Holds the session lock for the whole transfer.

        Raises:
            SessionNotConnectedError: If the session is not established
            ftplib.Error / OSError: On transfer failure
        """
        with self._lock:
            if not self.is_connected or self._client is None:
                raise SessionNotConnectedError(
                    f"Cannot store {remote_path}: session to {self.address} is not connected"
                )
            self._client.storbinary(f"STOR {remote_path}", fileobj)

    def close(self) -> None:
        """Close the session. Safe to call more than once."""
        with self._lock:
            client, self._client = self._client, None
            was_connected = self.is_connected
            self.state = SessionState.DISCONNECTED

        if client is None:
            return

        try:
            client.quit()
        except ftplib.all_errors as e:
            logger.debug(f"QUIT to {self.address} failed, closing socket: {e}")
            client.close()

        if was_connected:
            logger.info(f"Transfer session to {self.address} closed")

    def __enter__(self) -> "TransferSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _release(client) -> None:
    """Hard-close a client from a failed attempt."""
    try:
        client.close()
    except ftplib.all_errors as e:
        logger.debug(f"Error releasing failed connection: {e}")
