"""
Integration tests for end-to-end hosts file checks.

These run the full pipeline against local TLS servers; unreachable hosts
are simulated by patching the TCP connect.
"""

import asyncio
import io
import logging
from unittest.mock import AsyncMock, patch

import pytest

from hostschecker.cli import create_parser, run_check
from hostschecker.console import ConsoleOutput

CERT_HOSTNAME = "test.example.com"  # Name on the conftest certificate


def make_console():
    return ConsoleOutput(use_colors=False, stream=io.StringIO(), error_stream=io.StringIO())


def write_hosts(tmp_path, content, bom=False):
    hosts = tmp_path / "hosts"
    data = content.encode("utf-8")
    hosts.write_bytes((b"\xef\xbb\xbf" + data) if bom else data)
    return str(hosts)


async def check(*argv):
    """Run a check; returns (exit code, stdout lines, stderr text)."""
    console = make_console()
    args = create_parser().parse_args(list(argv))
    code = await run_check(args, console)
    return code, console.stream.getvalue().splitlines(), console.error_stream.getvalue()


@pytest.mark.asyncio
async def test_end_to_end_handshake_succeeds(tmp_path, tls_server, cert_files):
    """A pair whose server presents a valid certificate is not reported."""
    path = write_hosts(tmp_path, f"127.0.0.1 {CERT_HOSTNAME}\n")

    async with tls_server() as port:
        code, out, err = await check("--path", path, "--port", str(port), "--ca-file", cert_files.cert_path)

    assert code == 0
    assert out == ["total mismatch: 0"]
    assert err == ""


@pytest.mark.asyncio
async def test_end_to_end_mixed_results(tmp_path, tls_server, cert_files):
    """Only the mismatching hostname is reported; BOM and comments are handled."""
    content = (
        "# local test hosts\n"
        f"127.0.0.1 {CERT_HOSTNAME} wrong.example.org  # two names\n"
        "not-an-ip ignored.example\n"
    )
    path = write_hosts(tmp_path, content, bom=True)

    async with tls_server() as port:
        code, out, _ = await check(
            "--path", path, "--port", str(port), "--ca-file", cert_files.cert_path, "--threads", "4"
        )

    assert code == 0
    assert len(out) == 2
    assert out[0].startswith("{127.0.0.1 wrong.example.org} ")
    assert "wrong.example.org" in out[0][len("{127.0.0.1 wrong.example.org} "):]
    assert out[1] == "total mismatch: 1"


@pytest.mark.asyncio
async def test_end_to_end_insecure(tmp_path, tls_server):
    path = write_hosts(tmp_path, "127.0.0.1 wrong.example.org\n")

    async with tls_server() as port:
        code, out, _ = await check("--path", path, "--port", str(port), "--insecure")

    assert code == 0
    assert out == ["total mismatch: 0"]


@pytest.mark.asyncio
async def test_end_to_end_timeout(tmp_path):
    """An unreachable address is reported as an i/o timeout."""
    path = write_hosts(tmp_path, "10.255.255.1 example.com\n")

    with patch("asyncio.open_connection", new=AsyncMock(side_effect=asyncio.TimeoutError)):
        code, out, _ = await check("--path", path, "--timeout", "1")

    assert code == 0
    assert out == ["{10.255.255.1 example.com} i/o timeout", "total mismatch: 1"]


@pytest.mark.asyncio
async def test_end_to_end_timeout_short_circuit(tmp_path):
    """Two lines sharing a timing-out IP are dialed once and reported once."""
    path = write_hosts(tmp_path, "10.255.255.1 example.com\n10.255.255.1 example.org\n")
    mock_open = AsyncMock(side_effect=asyncio.TimeoutError)

    with patch("asyncio.open_connection", new=mock_open):
        code, out, _ = await check("--path", path, "--threads", "1")

    assert code == 0
    assert mock_open.await_count == 1
    assert out == ["{10.255.255.1 example.com} i/o timeout", "total mismatch: 1"]


@pytest.mark.asyncio
async def test_end_to_end_connection_refused(tmp_path, unused_port):
    path = write_hosts(tmp_path, "127.0.0.1 a.example.com b.example.com\n")

    code, out, _ = await check("--path", path, "--port", str(unused_port))

    assert code == 0
    assert sorted(line.split("}")[0] for line in out[:-1]) == [
        "{127.0.0.1 a.example.com",
        "{127.0.0.1 b.example.com",
    ]
    assert out[-1] == "total mismatch: 2"


@pytest.mark.asyncio
async def test_end_to_end_summary_by_error_code(tmp_path, caplog):
    """The closing INFO summary breaks mismatches down by error code."""
    caplog.set_level(logging.INFO, logger="hostschecker.cli")
    path = write_hosts(tmp_path, "10.255.255.1 example.com\n192.0.2.10 a.example.com b.example.com\n")

    async def refuse_or_hang(host, port):
        if host == "10.255.255.1":
            raise asyncio.TimeoutError
        raise ConnectionRefusedError(111, "Connect call failed")

    with patch("asyncio.open_connection", new=refuse_or_hang):
        code, out, _ = await check("--path", path, "--threads", "1")

    assert code == 0
    assert out[-1] == "total mismatch: 3"
    assert "Mismatches by error code: CONN_REFUSED=2, CONN_TIMEOUT=1; 1 IP(s) timed out" in caplog.text


@pytest.mark.asyncio
async def test_end_to_end_missing_file(tmp_path):
    """A file that cannot be opened is an error and prints no count."""
    code, out, err = await check("--path", str(tmp_path / "missing"))

    assert code == 1
    assert out == []
    assert "Cannot open hosts file" in err


@pytest.mark.asyncio
async def test_end_to_end_read_error(tmp_path):
    """Undecodable content aborts the run instead of printing a count."""
    hosts = tmp_path / "hosts"
    hosts.write_bytes(b"127.0.0.1 localhost\n\xff\xfe\xfd broken\n")

    code, out, err = await check("--path", str(hosts), "--insecure")

    assert code == 1
    assert not any(line.startswith("total mismatch") for line in out)
    assert "Failed to read hosts file" in err
