"""
TCP connect and TLS handshake probing.
"""

import asyncio
import logging
import socket
import ssl
import struct
from typing import Optional

from .errors import (
    ErrorCode,
    FailureKind,
    ProbeFailure,
    ProbePhase,
    classify_os_error,
    describe_exception,
)
from .hosts_file import Pair

logger = logging.getLogger(__name__)

# Constants
DEFAULT_TIMEOUT = 5  # Per-phase timeout in seconds
DEFAULT_PORT = 443  # Default HTTPS port
LINGER_OFF = struct.pack("ii", 1, 0)  # SO_LINGER on, 0s: reset instead of FIN


class TLSProber:
    """
    Checks whether an address completes a TLS handshake for a hostname.

    The connect and the handshake each get the full timeout. The connection
    is always aborted afterwards; probe targets are often unreachable or
    misbehaving, so no graceful shutdown is attempted.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        port: int = DEFAULT_PORT,
        verify: bool = True,
        ca_file: Optional[str] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
    ):
        """
        Initialize TLS prober.

        Args:
            timeout: Timeout in seconds for the connect and for the handshake
            port: Target port
            verify: Verify the certificate chain and hostname during handshake
            ca_file: Extra CA bundle to trust when verifying
            ssl_context: Prebuilt context, overrides verify and ca_file
        """
        self.timeout = timeout
        self.port = port
        self.verify = verify
        self._ssl_context = ssl_context or self._create_ssl_context(verify, ca_file)

    @staticmethod
    def _create_ssl_context(verify: bool, ca_file: Optional[str]) -> ssl.SSLContext:
        """
        Create SSL context for probing.

        Returns:
            Configured SSL context
        """
        context = ssl.create_default_context(cafile=ca_file)
        if not verify:
            # SNI is still sent; only the server's answer to it is unchecked
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    @staticmethod
    def _disable_linger(writer: asyncio.StreamWriter) -> None:
        """Make close() reset the connection instead of waiting out a FIN."""
        sock = writer.get_extra_info("socket")
        if sock is not None:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, LINGER_OFF)

    def _failure(
        self,
        pair: Pair,
        kind: FailureKind,
        phase: ProbePhase,
        error: BaseException,
    ) -> ProbeFailure:
        if isinstance(error, OSError) and not isinstance(error, asyncio.TimeoutError):
            error_code = classify_os_error(error)
        elif kind == FailureKind.TIMEOUT:
            error_code = (
                ErrorCode.CONN_TIMEOUT
                if phase == ProbePhase.CONNECT
                else ErrorCode.TLS_HANDSHAKE_TIMEOUT
            )
        else:
            error_code = ErrorCode.UNKNOWN_ERROR

        failure = ProbeFailure(
            pair=pair,
            kind=kind,
            phase=phase,
            detail=describe_exception(error),
            error_code=error_code,
        )
        logger.debug(f"Probe {pair} failed in {phase.value}: {error_code.value} {failure.reason}")
        return failure

    async def hello(self, pair: Pair) -> Optional[ProbeFailure]:
        """
        Connect to the pair's IP and perform a TLS handshake using its hostname as SNI.

        Args:
            pair: The (ip, hostname) pair to check

        Returns:
            None if the handshake succeeded, otherwise the classified failure
        """
        try:
            return await self._hello(pair)
        except Exception as e:
            logger.debug(f"Unexpected error probing {pair}: {e}")
            return self._failure(pair, FailureKind.UNKNOWN, ProbePhase.HANDSHAKE, e)

    async def _hello(self, pair: Pair) -> Optional[ProbeFailure]:
        logger.debug(f"Dialing {pair}")
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(pair.ip, self.port),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, TimeoutError) as e:
            return self._failure(pair, FailureKind.TIMEOUT, ProbePhase.CONNECT, e)
        except OSError as e:
            return self._failure(pair, FailureKind.CONNECTION, ProbePhase.CONNECT, e)

        transport = writer.transport
        try:
            self._disable_linger(writer)
        except OSError as e:
            transport.abort()
            return self._failure(pair, FailureKind.CONNECTION, ProbePhase.CONNECT, e)

        tls_transport = None
        try:
            loop = asyncio.get_running_loop()
            tls_transport = await asyncio.wait_for(
                loop.start_tls(
                    transport,
                    transport.get_protocol(),
                    self._ssl_context,
                    server_hostname=pair.hostname,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, TimeoutError) as e:
            return self._failure(pair, FailureKind.TIMEOUT, ProbePhase.HANDSHAKE, e)
        except OSError as e:
            # ssl.SSLError is an OSError: alerts, hostname mismatch, resets
            return self._failure(pair, FailureKind.HANDSHAKE, ProbePhase.HANDSHAKE, e)
        finally:
            (tls_transport or transport).abort()

        logger.debug(f"Handshake succeeded for {pair}")
        return None
