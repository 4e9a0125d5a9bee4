"""Pytest configuration and shared fixtures for tlsbind tests."""

from pathlib import Path

import pytest
import structlog
from cryptography import x509
from cryptography.hazmat.primitives import serialization

from tlsbind.security.certificates import (
    ServerCertificate,
    generate_self_signed_cert,
    to_pkcs12,
)
from tlsbind.security.store import (
    CertificateStoreResolver,
    DirectoryCertificateStore,
    StoreLocation,
)
from tlsbind.server_options import ServerOptions


class StubCertificateProvider:
    """Default certificate provider returning a fixed certificate."""

    def __init__(self, certificate: ServerCertificate | None = None) -> None:
        self._certificate = certificate
        self.calls = 0

    def certificate(self) -> ServerCertificate | None:
        self.calls += 1
        return self._certificate


@pytest.fixture(autouse=True)
def reset_structlog():
    """Keep structlog configuration changes from leaking between tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def certificate_factory():
    """Return a factory building in-memory server certificates.

    Keyword arguments are passed to ``generate_self_signed_cert``.
    """

    def factory(hostname: str = "localhost", **kwargs) -> ServerCertificate:
        cert_pem, key_pem = generate_self_signed_cert(hostname, **kwargs)
        return ServerCertificate(
            x509.load_pem_x509_certificate(cert_pem),
            serialization.load_pem_private_key(key_pem, password=None),
        )

    return factory


@pytest.fixture
def pfx_factory(tmp_path: Path):
    """Return a factory writing PKCS#12 files under ``tmp_path``."""

    def factory(
        file_name: str = "cert.pfx",
        password: str | None = "testPassword",
        hostname: str = "localhost",
    ) -> Path:
        cert_pem, key_pem = generate_self_signed_cert(hostname, "Test")
        path = tmp_path / file_name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(to_pkcs12(cert_pem, key_pem, password))
        return path

    return factory


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    return tmp_path / "stores"


@pytest.fixture
def store_factory(store_root: Path):
    """Store factory rooted in a temporary directory."""

    def factory(name: str, location: StoreLocation) -> DirectoryCertificateStore:
        return DirectoryCertificateStore(name, location, root=store_root / location.value)

    return factory


@pytest.fixture
def make_provider():
    """Return the stub default certificate provider class."""
    return StubCertificateProvider


@pytest.fixture
def default_provider() -> StubCertificateProvider:
    return StubCertificateProvider()


@pytest.fixture
def server_options(
    tmp_path: Path,
    store_factory,
    default_provider: StubCertificateProvider,
) -> ServerOptions:
    """ServerOptions isolated from the real certificate stores."""
    return ServerOptions(
        content_root=tmp_path,
        default_certificate_provider=default_provider,
        store_resolver=CertificateStoreResolver(store_factory),
    )
