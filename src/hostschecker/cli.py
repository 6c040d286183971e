"""
Command-line interface for hostschecker.
"""

import argparse
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from . import __version__
from .hosts_file import default_hosts_path

if TYPE_CHECKING:
    from .console import ConsoleOutput

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="hostschecker",
        description="Check that hosts file entries still complete a TLS handshake for their hostnames",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check the system hosts file
  hostschecker

  # Check another file with more parallel probes and a shorter timeout
  hostschecker --path ./hosts.txt --threads 8 --timeout 3

  # Show invalid lines and per-pair progress
  hostschecker --debug
        """,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # Input
    parser.add_argument(
        "--path",
        "-p",
        metavar="FILE",
        default=default_hosts_path(),
        help=f"Hosts file to check (default: {default_hosts_path()})",
    )

    # Probe options
    parser.add_argument(
        "--timeout",
        type=int,
        default=5,
        metavar="SEC",
        help="Timeout for the connection and for the handshake, in seconds (default: 5)",
    )
    parser.add_argument(
        "--threads",
        type=int,
        default=2,
        metavar="NUM",
        help="Maximum number of concurrent probes (default: 2)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=443,
        metavar="PORT",
        help="Target port (default: 443)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Send SNI but do not verify the server certificate",
    )
    parser.add_argument(
        "--ca-file",
        metavar="FILE",
        help="Additional CA bundle (PEM) to trust when verifying",
    )

    # Logging options
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log skipped lines with invalid IPs",
    )
    parser.add_argument(
        "--log-file",
        metavar="FILE",
        help="Log output to file",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored error output",
    )

    return parser


def validate_args(args: argparse.Namespace) -> Optional[str]:
    """
    Validate parsed arguments.

    Returns:
        Error message if validation fails, None otherwise.
    """
    if not 1 <= args.port <= 65535:
        return f"Invalid port: {args.port}. Must be between 1 and 65535."

    if args.threads < 1:
        return f"Invalid thread count: {args.threads}. Must be at least 1."

    if args.timeout < 1:
        return f"Invalid timeout: {args.timeout}. Must be at least 1 second."

    if args.ca_file and not Path(args.ca_file).is_file():
        return f"CA file not found: {args.ca_file}"

    return None


def log_level(args: argparse.Namespace) -> int:
    if args.debug:
        return logging.DEBUG
    if args.verbose:
        return logging.INFO
    return logging.WARNING


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    error = validate_args(args)
    if error:
        print(f"Error: {error}", file=sys.stderr)
        return 1

    from .console import ConsoleOutput

    logging.basicConfig(
        level=log_level(args),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        filename=args.log_file if args.log_file else None,
    )

    console = ConsoleOutput(use_colors=not args.no_color)

    try:
        import asyncio

        return asyncio.run(run_check(args, console))
    except KeyboardInterrupt:
        console.error("\nCheck interrupted by user")
        return 130
    except Exception as e:
        console.error(f"Fatal error: {e}")
        logger.exception("Fatal error during check")
        return 1


async def run_check(args: argparse.Namespace, console: "ConsoleOutput") -> int:
    """
    Check every pair of the hosts file and print the mismatches.

    Args:
        args: Parsed command-line arguments
        console: Console output handler

    Returns:
        Exit code
    """
    from .checker import HostsChecker
    from .console import report
    from .errors import HostsFileError
    from .hosts_file import open_hosts_file
    from .prober import TLSProber

    try:
        hosts = open_hosts_file(args.path)
    except HostsFileError as e:
        console.error(f"Error: {e}")
        return 1

    prober = TLSProber(
        timeout=args.timeout,
        port=args.port,
        verify=not args.insecure,
        ca_file=args.ca_file,
    )
    checker = HostsChecker(prober, concurrency=args.threads)
    logger.debug(f"Checking {args.path} (threads: {args.threads}, timeout: {args.timeout}s)")

    by_code: Counter = Counter()
    with hosts:
        try:
            count = await report(checker.check(hosts), console, by_code)
        except HostsFileError as e:
            console.error(f"Error: {e}")
            return 1

    breakdown = ", ".join(f"{code.value}={n}" for code, n in by_code.most_common())
    logger.info(
        f"Mismatches by error code: {breakdown or 'none'}; "
        f"{len(checker.known_timeouts)} IP(s) timed out"
    )
    console.print_total(count)
    return 0
