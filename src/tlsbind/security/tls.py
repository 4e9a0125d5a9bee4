"""TLS options and the adapter that terminates TLS for a listener.

Server contexts are built with PyOpenSSL rather than Python's ssl module,
which lets the server load in-memory certificates and keys and use a
custom verification callback. With client certificates enabled, the
callback accepts any certificate (including self-signed) and trust
decisions are made by ``TLSOptions.client_certificate_validation``.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, Flag, auto

from cryptography import x509
from OpenSSL import SSL, crypto

from ..errors import CertificateLoadError, MissingCertificateError
from ..logging.structured import get_logger
from .certificates import ServerCertificate

logger = get_logger(__name__)


class ClientCertificateMode(Enum):
    NO_CERTIFICATE = "NoCertificate"
    ALLOW_CERTIFICATE = "AllowCertificate"
    REQUIRE_CERTIFICATE = "RequireCertificate"


class HttpProtocols(Flag):
    HTTP1 = auto()
    HTTP2 = auto()
    HTTP1_AND_HTTP2 = HTTP1 | HTTP2


@dataclass
class TLSOptions:
    """Settings for one TLS endpoint.

    ``protocols`` is overwritten from the listener when the adapter is
    attached.
    """

    server_certificate: ServerCertificate | None = None
    client_certificate_mode: ClientCertificateMode = ClientCertificateMode.NO_CERTIFICATE
    client_certificate_validation: Callable[[x509.Certificate], bool] | None = None
    minimum_version: int = SSL.TLS1_2_VERSION
    protocols: HttpProtocols = HttpProtocols.HTTP1
    session_id: bytes | None = None
    handshake_timeout: float = 10.0


def verify_callback(
    conn: SSL.Connection,
    cert: crypto.X509,
    errnum: int,
    depth: int,
    ok: int,
) -> bool:
    """Verification callback that accepts any client certificate.

    Args:
        conn: The SSL connection object.
        cert: The certificate being verified.
        errnum: The error number (e.g., 18 for self-signed).
        depth: Certificate chain depth.
        ok: Whether OpenSSL considers the cert valid (ignored).

    Returns:
        Always True - validation happens in ``client_certificate_validation``.
    """
    return True


def _alpn_protocols(protocols: HttpProtocols) -> list[bytes]:
    offered = []
    if HttpProtocols.HTTP2 in protocols:
        offered.append(b"h2")
    if HttpProtocols.HTTP1 in protocols:
        offered.append(b"http/1.1")
    return offered


def create_server_context(options: TLSOptions) -> SSL.Context:
    """Create a PyOpenSSL server context from TLS options.

    Raises:
        MissingCertificateError: If no server certificate is set.
        CertificateLoadError: If the certificate is released, lacks a
            private key, or the key does not match.
    """
    certificate = options.server_certificate
    if certificate is None:
        raise MissingCertificateError("the endpoint")
    if certificate.released:
        raise CertificateLoadError("Server certificate handle has been released")
    if certificate.private_key is None:
        raise CertificateLoadError(
            f"Server certificate {certificate.subject} has no private key"
        )

    ctx = SSL.Context(SSL.TLS_SERVER_METHOD)
    ctx.set_min_proto_version(options.minimum_version)

    if options.session_id is not None:
        ctx.set_session_id(options.session_id)

    try:
        ctx.use_certificate(crypto.X509.from_cryptography(certificate.certificate))
        ctx.use_privatekey(crypto.PKey.from_cryptography_key(certificate.private_key))
        for intermediate in certificate.chain:
            ctx.add_extra_chain_cert(crypto.X509.from_cryptography(intermediate))
        ctx.check_privatekey()
    except (SSL.Error, TypeError, ValueError) as e:
        raise CertificateLoadError(
            f"Cannot use certificate {certificate.subject}: {e}"
        ) from e

    offered = _alpn_protocols(options.protocols)

    def select_protocol(conn: SSL.Connection, client_protocols: list[bytes]) -> bytes:
        for protocol in offered:
            if protocol in client_protocols:
                return protocol
        return SSL.NO_OVERLAPPING_PROTOCOLS

    ctx.set_alpn_select_callback(select_protocol)

    if options.client_certificate_mode is ClientCertificateMode.REQUIRE_CERTIFICATE:
        ctx.set_verify(SSL.VERIFY_PEER | SSL.VERIFY_FAIL_IF_NO_PEER_CERT, verify_callback)
    elif options.client_certificate_mode is ClientCertificateMode.ALLOW_CERTIFICATE:
        ctx.set_verify(SSL.VERIFY_PEER, verify_callback)
    else:
        ctx.set_verify(SSL.VERIFY_NONE, lambda *args: True)

    return ctx


class TLSAdapter:
    """Connection adapter that terminates TLS with the resolved certificate."""

    is_tls = True

    def __init__(self, options: TLSOptions, endpoint: str = "the endpoint") -> None:
        if options.server_certificate is None:
            raise MissingCertificateError(endpoint)
        self.options = options
        self.context = create_server_context(options)
        logger.debug(
            "tls_adapter_created",
            endpoint=endpoint,
            subject=options.server_certificate.subject,
            fingerprint=options.server_certificate.fingerprint,
        )

    @property
    def certificate(self) -> ServerCertificate:
        return self.options.server_certificate  # type: ignore[return-value]

    def validate_client_certificate(self, certificate: x509.Certificate | None) -> bool:
        """Apply the client certificate policy to a peer certificate."""
        mode = self.options.client_certificate_mode
        if certificate is None:
            return mode is not ClientCertificateMode.REQUIRE_CERTIFICATE
        if mode is ClientCertificateMode.NO_CERTIFICATE:
            return True
        if self.options.client_certificate_validation is None:
            return True
        return self.options.client_certificate_validation(certificate)
