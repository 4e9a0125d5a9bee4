"""Certificate stores and subject-based certificate resolution.

A store is a named collection of installed certificates at a location
(current user or local machine). The resolver opens a store, finds the
certificates matching a subject and returns the one expiring last.

``DirectoryCertificateStore`` keeps each store in a directory::

    <root>/<store name>/*.pem|*.crt|*.pfx|*.p12

where ``<root>`` is ``$TLSBIND_CERT_STORE_ROOT/<location>`` if set, otherwise
``~/.tlsbind/certificates`` (current user) or ``/etc/tlsbind/certificates``
(local machine).
"""

import os
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Protocol

from cryptography import x509

from ..errors import CertificateLoadError, CertificateNotFoundError, ConfigurationError
from ..logging.structured import get_logger
from .certificates import PKCS12_SUFFIXES, ServerCertificate, load_certificate, to_pem

logger = get_logger(__name__)

STORE_ROOT_ENV = "TLSBIND_CERT_STORE_ROOT"
DEFAULT_STORE_NAME = "My"
CERTIFICATE_SUFFIXES = {".pem", ".crt"} | PKCS12_SUFFIXES


class StoreLocation(str, Enum):
    CURRENT_USER = "CurrentUser"
    LOCAL_MACHINE = "LocalMachine"

    @classmethod
    def parse(cls, value: str | None) -> "StoreLocation":
        """Parse a location name case-insensitively.

        Returns:
            ``CURRENT_USER`` when ``value`` is empty.

        Raises:
            ConfigurationError: If the name is not a known location.
        """
        if not value:
            return cls.CURRENT_USER
        for location in cls:
            if location.value.lower() == value.strip().lower():
                return location
        raise ConfigurationError(
            f"Invalid certificate store location {value!r}; expected one of "
            + ", ".join(location.value for location in cls)
        )


class CertificateStore(Protocol):
    """What the resolver and development provider need from a store."""

    def __enter__(self) -> "CertificateStore": ...

    def __exit__(self, *exc_info: object) -> None: ...

    def find_by_subject(self, subject: str, valid_only: bool) -> list[ServerCertificate]: ...

    def find_by_purpose(
        self, oid: x509.ObjectIdentifier, valid_only: bool
    ) -> list[ServerCertificate]: ...


StoreFactory = Callable[[str, StoreLocation], CertificateStore]


def default_store_root(location: StoreLocation) -> Path:
    root = os.environ.get(STORE_ROOT_ENV)
    if root:
        return Path(root) / location.value
    if location is StoreLocation.LOCAL_MACHINE:
        return Path("/etc/tlsbind/certificates")
    return Path.home() / ".tlsbind" / "certificates"


class DirectoryCertificateStore:
    """A certificate store backed by a directory of certificate files.

    Every query loads fresh handles. The store tracks them and releases
    all of them on ``close()``, so callers keep a certificate beyond the
    store's lifetime by copying it first.
    """

    def __init__(
        self,
        name: str = DEFAULT_STORE_NAME,
        location: StoreLocation = StoreLocation.CURRENT_USER,
        root: str | Path | None = None,
    ) -> None:
        self.name = name
        self.location = location
        base = Path(root) if root is not None else default_store_root(location)
        self.path = base / name
        self._loaded: list[ServerCertificate] = []
        self._open = False

    def open(self) -> None:
        self._open = True

    def close(self) -> None:
        for certificate in self._loaded:
            certificate.release()
        self._loaded.clear()
        self._open = False

    def __enter__(self) -> "DirectoryCertificateStore":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def certificates(self) -> list[ServerCertificate]:
        """Load every certificate in the store, in file name order."""
        if not self._open:
            raise RuntimeError(f"Certificate store {self.name} is not open")
        if not self.path.is_dir():
            return []

        certificates = []
        for entry in sorted(self.path.iterdir()):
            if entry.suffix.lower() not in CERTIFICATE_SUFFIXES:
                continue
            try:
                certificate = load_certificate(entry)
            except CertificateLoadError as e:
                logger.warning("store_entry_unreadable", path=str(entry), error=str(e))
                continue
            self._loaded.append(certificate)
            certificates.append(certificate)
        return certificates

    def find_by_subject(self, subject: str, valid_only: bool) -> list[ServerCertificate]:
        """Find certificates whose subject contains ``subject``.

        Matching is case-insensitive against the common name and the full
        RFC 4514 subject.
        """
        wanted = subject.lower()
        return [
            certificate
            for certificate in self.certificates()
            if (
                wanted in (certificate.common_name or "").lower()
                or wanted in certificate.subject.lower()
            )
            and (not valid_only or certificate.is_valid())
        ]

    def find_by_purpose(
        self, oid: x509.ObjectIdentifier, valid_only: bool
    ) -> list[ServerCertificate]:
        return [
            certificate
            for certificate in self.certificates()
            if certificate.has_purpose(oid) and (not valid_only or certificate.is_valid())
        ]

    def add(self, certificate: ServerCertificate, file_name: str | None = None) -> Path:
        """Write a certificate (and its key) into the store as PEM."""
        self.path.mkdir(parents=True, exist_ok=True)
        target = self.path / (file_name or f"{certificate.fingerprint.split(':', 1)[1][:16]}.pem")
        target.write_bytes(to_pem(certificate))
        try:
            target.chmod(0o600)
        except OSError:
            logger.debug("store_entry_chmod_failed", path=str(target))
        return target


class CertificateStoreResolver:
    """Resolve a certificate by subject from a certificate store."""

    def __init__(self, store_factory: StoreFactory = DirectoryCertificateStore) -> None:
        self.store_factory = store_factory

    def resolve(
        self,
        subject: str,
        store_name: str,
        location: StoreLocation,
        valid_only: bool,
    ) -> ServerCertificate:
        """Return the matching certificate with the latest expiration.

        The returned handle is a copy owned by the caller. Every other
        handle produced by the lookup is released before returning, on
        success and on failure.

        Raises:
            CertificateNotFoundError: If nothing matches.
        """
        store_name = store_name or DEFAULT_STORE_NAME
        found: list[ServerCertificate] = []
        with self.store_factory(store_name, location) as store:
            try:
                found = store.find_by_subject(subject, valid_only)
                selected = max(found, key=lambda c: c.not_after, default=None)
                if selected is None:
                    raise CertificateNotFoundError(subject, store_name, location.value)
                certificate = selected.copy()
            finally:
                for candidate in found:
                    candidate.release()

        logger.debug(
            "store_certificate_resolved",
            subject=subject,
            store=store_name,
            location=location.value,
            fingerprint=certificate.fingerprint,
            not_after=certificate.not_after.isoformat(),
        )
        return certificate


def load_from_store(
    subject: str,
    store_name: str,
    location: StoreLocation,
    valid_only: bool,
) -> ServerCertificate:
    """Resolve a certificate from the default directory stores."""
    return CertificateStoreResolver().resolve(subject, store_name, location, valid_only)
