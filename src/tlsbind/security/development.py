"""Fallback certificate for TLS endpoints configured without one.

Local development HTTPS certificates carry a purpose extension
(``HTTPS_DEVELOPMENT_OID``) and live in the current user's ``My`` store.
"""

from typing import TYPE_CHECKING, Protocol

from ..errors import MissingCertificateError
from ..logging.structured import get_logger
from .certificates import HTTPS_DEVELOPMENT_OID, ServerCertificate
from .store import (
    DEFAULT_STORE_NAME,
    DirectoryCertificateStore,
    StoreFactory,
    StoreLocation,
)

if TYPE_CHECKING:
    from ..listener import ListenOptions

logger = get_logger(__name__)


class DefaultCertificateProvider(Protocol):
    def certificate(self) -> ServerCertificate | None: ...


class DevelopmentCertificateProvider:
    """Supplies the local development certificate, if one is installed."""

    def __init__(self, store_factory: StoreFactory = DirectoryCertificateStore) -> None:
        self.store_factory = store_factory

    def certificate(self) -> ServerCertificate | None:
        """Return the first valid development certificate, or None."""
        with self.store_factory(DEFAULT_STORE_NAME, StoreLocation.CURRENT_USER) as store:
            found = store.find_by_purpose(HTTPS_DEVELOPMENT_OID, valid_only=True)
            certificate = found[0].copy() if found else None

        if certificate is None:
            logger.debug("development_certificate_not_found")
        else:
            logger.debug(
                "development_certificate_located",
                subject=certificate.subject,
                fingerprint=certificate.fingerprint,
                not_after=certificate.not_after.isoformat(),
            )
        return certificate

    def configure_https(self, listener: "ListenOptions") -> "ListenOptions":
        """Attach TLS to ``listener`` using the development certificate.

        A certificate set by the global TLS defaults wins.

        Raises:
            MissingCertificateError: If no certificate is available.
        """
        from ..https import use_https

        def configure(options):
            if options.server_certificate is None:
                options.server_certificate = self.certificate()
                if options.server_certificate is None:
                    raise MissingCertificateError(listener.endpoint)

        return use_https(listener, configure)
