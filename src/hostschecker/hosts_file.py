"""
Hosts file reading and line parsing.
"""

import io
import ipaddress
import logging
import sys
from dataclasses import dataclass
from typing import List, Optional, TextIO, Tuple

from .errors import HostsFileError

logger = logging.getLogger(__name__)

# Constants
DEFAULT_PATH_WINDOWS = "C:/Windows/System32/drivers/etc/hosts"
DEFAULT_PATH_POSIX = "/etc/hosts"
UTF8_BOM = b"\xef\xbb\xbf"


@dataclass(frozen=True)
class Pair:
    """One claim that ``ip`` should answer TLS handshakes as ``hostname``."""

    ip: str
    hostname: str

    def __str__(self) -> str:
        return f"{{{self.ip} {self.hostname}}}"


def default_hosts_path(platform: Optional[str] = None) -> str:
    """Return the system hosts file location for the given platform."""
    platform = platform or sys.platform
    if platform.startswith("win"):
        return DEFAULT_PATH_WINDOWS
    return DEFAULT_PATH_POSIX


def parse_line(line: str) -> Optional[Tuple[str, List[str]]]:
    """
    Split one hosts file line into its address and hostnames.

    The address is returned as written and may not be a valid IP; the
    hostname list may be empty.

    Args:
        line: Raw line from the hosts file

    Returns:
        (ip, hostnames), or None for blank and comment lines
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    # Drop trailing comment
    hash_index = line.find("#")
    if hash_index != -1:
        line = line[:hash_index]

    fields = line.split()
    return fields[0], fields[1:]


def is_valid_ip(ip: str) -> bool:
    """Check that ``ip`` is a well-formed IPv4 or IPv6 address."""
    try:
        ipaddress.ip_address(ip)
        return True
    except ValueError:
        return False


def skip_utf8_bom(stream: io.BufferedIOBase) -> bool:
    """
    Consume a leading UTF-8 byte order mark, or rewind to the start.

    Returns:
        True if a BOM was found and skipped
    """
    head = stream.read(len(UTF8_BOM))
    if head == UTF8_BOM:
        return True
    stream.seek(0)
    return False


def open_hosts_file(path: str) -> TextIO:
    """
    Open a hosts file for line-by-line reading.

    Args:
        path: Path to the hosts file

    Returns:
        UTF-8 text stream positioned after any byte order mark

    Raises:
        HostsFileError: If the file cannot be opened
    """
    try:
        raw = open(path, "rb")
    except OSError as e:
        raise HostsFileError(f"Cannot open hosts file {path}: {e}", path=path) from e

    try:
        if skip_utf8_bom(raw):
            logger.debug(f"Skipped UTF-8 BOM in {path}")
    except OSError as e:
        raw.close()
        raise HostsFileError(f"Cannot read hosts file {path}: {e}", path=path) from e

    return io.TextIOWrapper(raw, encoding="utf-8")
