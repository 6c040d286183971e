"""
Failure classification for hosts-file checks.

Per-pair probe failures are carried through the pipeline as tagged values
and only rendered to text at the output boundary. Input errors are raised.
"""

import errno as err_mod
import ssl
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .hosts_file import Pair

TIMEOUT_REASON = "i/o timeout"


class FailureKind(str, Enum):
    """High-level reason a pair did not pass."""

    TIMEOUT = "timeout"
    CONNECTION = "connection"
    HANDSHAKE = "handshake"
    UNKNOWN = "unknown"


class ProbePhase(str, Enum):
    """Stage of the probe in which the failure happened."""

    CONNECT = "connect"
    HANDSHAKE = "handshake"


class ErrorCode(str, Enum):
    """Specific error codes for detailed failure diagnostics."""

    # Connection errors
    CONN_TIMEOUT = "CONN_TIMEOUT"
    CONN_REFUSED = "CONN_REFUSED"
    CONN_RESET = "CONN_RESET"
    CONN_ABORTED = "CONN_ABORTED"

    # Network errors
    NET_UNREACHABLE = "NET_UNREACHABLE"
    NET_HOST_UNREACHABLE = "NET_HOST_UNREACHABLE"
    NET_HOST_DOWN = "NET_HOST_DOWN"

    # TLS errors
    TLS_HANDSHAKE_TIMEOUT = "TLS_HANDSHAKE_TIMEOUT"
    TLS_HANDSHAKE_FAILED = "TLS_HANDSHAKE_FAILED"
    TLS_PROTOCOL_ERROR = "TLS_PROTOCOL_ERROR"
    TLS_EOF = "TLS_EOF"
    TLS_ALERT_RECEIVED = "TLS_ALERT_RECEIVED"
    PLAIN_HTTP_NO_TLS = "PLAIN_HTTP_NO_TLS"  # Peer answered, but not with TLS
    CERT_HOSTNAME_MISMATCH = "CERT_HOSTNAME_MISMATCH"
    CERT_VERIFICATION_FAILED = "CERT_VERIFICATION_FAILED"

    # General
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass
class HostsFileError(Exception):
    """
    Raised when the hosts file cannot be opened or read.

    Fatal to the whole run: no partial mismatch count is meaningful.
    """

    message: str
    path: str = ""

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ProbeFailure:
    """A pair that did not complete a TLS handshake."""

    pair: "Pair"
    kind: FailureKind
    phase: ProbePhase
    detail: str = ""
    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    @property
    def reason(self) -> str:
        """Human-readable reason, as printed next to the pair."""
        if self.kind == FailureKind.TIMEOUT:
            return TIMEOUT_REASON
        return self.detail

    @property
    def remember_ip(self) -> bool:
        """Whether the IP should be skipped for the rest of the run."""
        return self.kind == FailureKind.TIMEOUT and self.phase == ProbePhase.CONNECT

    def render(self) -> str:
        return f"{self.pair} {self.reason}"


def describe_exception(e: BaseException) -> str:
    """Error text for a failure line; falls back to the exception type."""
    return str(e) or type(e).__name__


def classify_ssl_error(e: ssl.SSLError) -> ErrorCode:
    """
    Classify an SSL error raised during the handshake.

    Args:
        e: The SSL error to classify

    Returns:
        The matching ErrorCode
    """
    if isinstance(e, ssl.SSLCertVerificationError):
        if "hostname" in str(e).lower():
            return ErrorCode.CERT_HOSTNAME_MISMATCH
        return ErrorCode.CERT_VERIFICATION_FAILED
    elif isinstance(e, (ssl.SSLEOFError, ssl.SSLZeroReturnError)):
        return ErrorCode.TLS_EOF

    ssl_reason = getattr(e, "reason", None) or ""
    if ssl_reason == "WRONG_VERSION_NUMBER":
        return ErrorCode.PLAIN_HTTP_NO_TLS
    elif ssl_reason == "SSLV3_ALERT_HANDSHAKE_FAILURE":
        return ErrorCode.TLS_HANDSHAKE_FAILED
    elif "ALERT" in ssl_reason:
        return ErrorCode.TLS_ALERT_RECEIVED

    if "handshake" in str(e).lower():
        return ErrorCode.TLS_HANDSHAKE_FAILED
    return ErrorCode.TLS_PROTOCOL_ERROR


_ERRNO_CODES = {
    err_mod.ECONNREFUSED: ErrorCode.CONN_REFUSED,
    err_mod.ECONNRESET: ErrorCode.CONN_RESET,
    err_mod.ECONNABORTED: ErrorCode.CONN_ABORTED,
    err_mod.ETIMEDOUT: ErrorCode.CONN_TIMEOUT,
    err_mod.ENETUNREACH: ErrorCode.NET_UNREACHABLE,
    err_mod.EHOSTUNREACH: ErrorCode.NET_HOST_UNREACHABLE,
    err_mod.EHOSTDOWN: ErrorCode.NET_HOST_DOWN,
}


def classify_os_error(e: OSError) -> ErrorCode:
    """
    Classify an OS/network error.

    Args:
        e: The OS error to classify

    Returns:
        The matching ErrorCode
    """
    if isinstance(e, ssl.SSLError):
        return classify_ssl_error(e)

    # Subclasses first; asyncio raises some of them without an errno
    if isinstance(e, ConnectionRefusedError):
        return ErrorCode.CONN_REFUSED
    if isinstance(e, ConnectionResetError):
        return ErrorCode.CONN_RESET
    if isinstance(e, ConnectionAbortedError):
        return ErrorCode.CONN_ABORTED
    if isinstance(e, TimeoutError):
        return ErrorCode.CONN_TIMEOUT

    return _ERRNO_CODES.get(e.errno, ErrorCode.UNKNOWN_ERROR)
