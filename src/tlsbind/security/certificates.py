"""Server certificate handles, file loading and self-signed generation."""

import hashlib
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from ..errors import CertificateLoadError

# Purpose marker carried by local development HTTPS certificates.
HTTPS_DEVELOPMENT_OID = x509.ObjectIdentifier("1.3.6.1.4.1.311.84.1.1")

PKCS12_SUFFIXES = {".pfx", ".p12"}

_PEM_KEY_PATTERN = re.compile(
    rb"-----BEGIN ([A-Z ]*)PRIVATE KEY-----.+?-----END \1PRIVATE KEY-----", re.DOTALL
)


class ServerCertificate:
    """An owned certificate handle: leaf certificate, private key and chain.

    Handles returned by stores and loaders belong to the caller. Releasing
    a handle drops its key material; a released handle can no longer be
    used to build a TLS context.
    """

    def __init__(
        self,
        certificate: x509.Certificate,
        private_key: object | None = None,
        chain: list[x509.Certificate] | None = None,
        source: str | None = None,
    ) -> None:
        self._certificate: x509.Certificate | None = certificate
        self._private_key = private_key
        self._chain = list(chain or [])
        self.source = source

    @property
    def released(self) -> bool:
        return self._certificate is None

    def _check_open(self) -> x509.Certificate:
        if self._certificate is None:
            raise CertificateLoadError("Certificate handle has been released")
        return self._certificate

    @property
    def certificate(self) -> x509.Certificate:
        return self._check_open()

    @property
    def private_key(self) -> object | None:
        self._check_open()
        return self._private_key

    @property
    def chain(self) -> list[x509.Certificate]:
        self._check_open()
        return list(self._chain)

    @property
    def subject(self) -> str:
        return self.certificate.subject.rfc4514_string()

    @property
    def common_name(self) -> str | None:
        attributes = self.certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        return str(attributes[0].value) if attributes else None

    @property
    def not_before(self) -> datetime:
        return self.certificate.not_valid_before_utc

    @property
    def not_after(self) -> datetime:
        return self.certificate.not_valid_after_utc

    @property
    def fingerprint(self) -> str:
        """SHA-256 fingerprint of the DER encoding, prefixed with ``sha256:``."""
        der = self.certificate.public_bytes(serialization.Encoding.DER)
        return f"sha256:{hashlib.sha256(der).hexdigest()}"

    def is_valid(self, now: datetime | None = None) -> bool:
        """True if ``now`` lies inside the validity period."""
        now = now or datetime.now(timezone.utc)
        return self.not_before <= now <= self.not_after

    def has_purpose(self, oid: x509.ObjectIdentifier) -> bool:
        try:
            self.certificate.extensions.get_extension_for_oid(oid)
        except x509.ExtensionNotFound:
            return False
        return True

    def copy(self) -> "ServerCertificate":
        """Return an independent handle over the same material."""
        return ServerCertificate(
            self.certificate, self._private_key, self._chain, source=self.source
        )

    def release(self) -> None:
        self._certificate = None
        self._private_key = None
        self._chain = []

    def __enter__(self) -> "ServerCertificate":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def __repr__(self) -> str:
        if self.released:
            return "ServerCertificate(<released>)"
        return f"ServerCertificate(subject={self.subject!r}, not_after={self.not_after.isoformat()})"


def load_certificate(path: str | Path, password: str | None = None) -> ServerCertificate:
    """Load a server certificate from a PKCS#12 or PEM file.

    ``.pfx`` and ``.p12`` files are read as PKCS#12. Anything else is read
    as PEM containing the certificate, optionally followed by chain
    certificates and the private key. An empty password means none.

    Raises:
        CertificateLoadError: If the file is missing, malformed, or the
            password is wrong.
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise CertificateLoadError(f"Cannot read certificate file {path}: {e}") from e

    if path.suffix.lower() in PKCS12_SUFFIXES:
        return _load_pkcs12(data, password, path)
    return _load_pem(data, password, path)


def _load_pkcs12(data: bytes, password: str | None, path: Path) -> ServerCertificate:
    candidates = [password.encode()] if password else [None, b""]
    error: Exception | None = None
    for candidate in candidates:
        try:
            key, certificate, chain = pkcs12.load_key_and_certificates(data, candidate)
        except ValueError as e:
            error = e
            continue
        if certificate is None:
            raise CertificateLoadError(f"No certificate found in {path}")
        return ServerCertificate(certificate, key, chain, source=str(path))
    raise CertificateLoadError(f"Cannot load certificate from {path}: {error}") from error


def _load_pem(data: bytes, password: str | None, path: Path) -> ServerCertificate:
    try:
        certificates = x509.load_pem_x509_certificates(data)
    except ValueError as e:
        raise CertificateLoadError(f"Cannot load certificate from {path}: {e}") from e

    key = None
    match = _PEM_KEY_PATTERN.search(data)
    if match is not None:
        try:
            key = serialization.load_pem_private_key(
                match.group(0), password=password.encode() if password else None
            )
        except (ValueError, TypeError) as e:
            raise CertificateLoadError(
                f"Cannot load private key from {path}: {e}"
            ) from e

    return ServerCertificate(certificates[0], key, certificates[1:], source=str(path))


def generate_self_signed_cert(
    hostname: str,
    organization: str = "tlsbind",
    valid_days: int = 365,
    not_valid_before: datetime | None = None,
    not_valid_after: datetime | None = None,
    development: bool = False,
    key_type: str = "ec",
) -> tuple[bytes, bytes]:
    """Generate a self-signed server certificate.

    Args:
        hostname: Common name and DNS subject alternative name.
        organization: Organization name for the subject.
        valid_days: Validity period when ``not_valid_after`` is not given.
        not_valid_before: Start of validity, now by default.
        not_valid_after: End of validity.
        development: Add the HTTPS development purpose extension.
        key_type: ``"ec"`` (P-256) or ``"rsa"`` (2048 bits).

    Returns:
        Tuple of (certificate PEM, unencrypted private key PEM).
    """
    if key_type == "rsa":
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    else:
        private_key = ec.generate_private_key(ec.SECP256R1())

    now = datetime.now(timezone.utc)
    not_valid_before = not_valid_before or now
    not_valid_after = not_valid_after or (now + timedelta(days=valid_days))

    subject = x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
            x509.NameAttribute(NameOID.COMMON_NAME, hostname),
        ]
    )

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_valid_before)
        .not_valid_after(not_valid_after)
        .add_extension(x509.SubjectAlternativeName([x509.DNSName(hostname)]), critical=False)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False
        )
    )
    if development:
        builder = builder.add_extension(
            x509.UnrecognizedExtension(HTTPS_DEVELOPMENT_OID, b"\x01"), critical=False
        )

    certificate = builder.sign(private_key, hashes.SHA256())

    cert_pem = certificate.public_bytes(serialization.Encoding.PEM)
    key_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return cert_pem, key_pem


def to_pkcs12(
    cert_pem: bytes,
    key_pem: bytes,
    password: str | None = None,
    friendly_name: bytes | None = None,
) -> bytes:
    """Bundle a PEM certificate and key into PKCS#12 bytes."""
    certificate = x509.load_pem_x509_certificate(cert_pem)
    key = serialization.load_pem_private_key(key_pem, password=None)
    if password:
        encryption = serialization.BestAvailableEncryption(password.encode())
    else:
        encryption = serialization.NoEncryption()
    return pkcs12.serialize_key_and_certificates(
        friendly_name, key, certificate, None, encryption
    )


def to_pem(certificate: ServerCertificate) -> bytes:
    """Serialize a handle to PEM: leaf, chain, then unencrypted key."""
    parts = [certificate.certificate.public_bytes(serialization.Encoding.PEM)]
    parts.extend(c.public_bytes(serialization.Encoding.PEM) for c in certificate.chain)
    if certificate.private_key is not None:
        parts.append(
            certificate.private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        )
    return b"".join(parts)
