"""
Shared fixtures: a self-signed certificate and local TLS test servers.
"""

import asyncio
import datetime
import socket
import ssl
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Set

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

CERT_HOSTNAME = "test.example.com"


@dataclass
class CertFiles:
    cert_path: str
    key_path: str


def create_test_certificate(cert_path, key_path) -> None:
    """Write a self-signed certificate valid for CERT_HOSTNAME."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    subject = issuer = x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Org"),
            x509.NameAttribute(NameOID.COMMON_NAME, CERT_HOSTNAME),
        ]
    )
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(CERT_HOSTNAME)]),
            critical=False,
        )
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(private_key, hashes.SHA256())
    )

    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )


@pytest.fixture(scope="session")
def cert_files(tmp_path_factory) -> CertFiles:
    directory = tmp_path_factory.mktemp("certs")
    cert_path = directory / "cert.pem"
    key_path = directory / "key.pem"
    create_test_certificate(cert_path, key_path)
    return CertFiles(cert_path=str(cert_path), key_path=str(key_path))


@pytest.fixture
def client_context(cert_files) -> ssl.SSLContext:
    """Client context that trusts the test certificate."""
    return ssl.create_default_context(cafile=cert_files.cert_path)


@asynccontextmanager
async def _serve(handler, ssl_context=None) -> AsyncIterator[int]:
    writers: Set[asyncio.StreamWriter] = set()

    async def tracked(reader, writer):
        writers.add(writer)
        try:
            await handler(reader, writer)
        except (ConnectionError, ssl.SSLError):
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(tracked, "127.0.0.1", 0, ssl=ssl_context)
    port = server.sockets[0].getsockname()[1]
    try:
        yield port
    finally:
        server.close()
        for writer in writers:
            writer.close()
        await server.wait_closed()


async def _hold_open(reader, writer):
    await reader.read()


@pytest.fixture
def tls_server(cert_files):
    """Factory for a TLS server presenting the test certificate; yields its port."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(cert_files.cert_path, cert_files.key_path)
    return lambda: _serve(_hold_open, ssl_context=context)


@pytest.fixture
def silent_server():
    """Factory for a TCP server that accepts but never speaks TLS; yields its port."""
    return lambda: _serve(_hold_open)


@pytest.fixture
def unused_port() -> int:
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
