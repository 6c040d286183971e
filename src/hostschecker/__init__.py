"""
hostschecker - Hosts File TLS Verification Tool

Checks that the static IP-to-hostname mappings of a hosts file still
complete a TLS handshake for the expected hostname.
"""

__version__ = "1.0.0"

__all__ = [
    "HostsChecker",
    "TimeoutRegistry",
    "TLSProber",
    "Pair",
    "parse_line",
    "open_hosts_file",
    "ProbeFailure",
    "FailureKind",
    "HostsFileError",
    "ConsoleOutput",
]


def __getattr__(name: str):
    """Lazy import module attributes on first access."""
    if name in ("HostsChecker", "TimeoutRegistry"):
        from .checker import HostsChecker, TimeoutRegistry
        if name == "HostsChecker":
            return HostsChecker
        return TimeoutRegistry
    elif name == "TLSProber":
        from .prober import TLSProber
        return TLSProber
    elif name in ("Pair", "parse_line", "open_hosts_file"):
        from . import hosts_file
        return getattr(hosts_file, name)
    elif name in ("ProbeFailure", "FailureKind", "HostsFileError"):
        from . import errors
        return getattr(errors, name)
    elif name == "ConsoleOutput":
        from .console import ConsoleOutput
        return ConsoleOutput
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
