"""Security module for certificates, certificate stores and TLS."""

from .certificates import (
    HTTPS_DEVELOPMENT_OID,
    ServerCertificate,
    generate_self_signed_cert,
    load_certificate,
    to_pem,
    to_pkcs12,
)
from .development import DefaultCertificateProvider, DevelopmentCertificateProvider
from .store import (
    CertificateStoreResolver,
    DirectoryCertificateStore,
    StoreLocation,
    load_from_store,
)
from .tls import (
    ClientCertificateMode,
    HttpProtocols,
    TLSAdapter,
    TLSOptions,
    create_server_context,
)

__all__ = [
    # Certificates
    "HTTPS_DEVELOPMENT_OID",
    "ServerCertificate",
    "generate_self_signed_cert",
    "load_certificate",
    "to_pem",
    "to_pkcs12",
    # Stores
    "CertificateStoreResolver",
    "DirectoryCertificateStore",
    "StoreLocation",
    "load_from_store",
    # Default certificate
    "DefaultCertificateProvider",
    "DevelopmentCertificateProvider",
    # TLS
    "ClientCertificateMode",
    "HttpProtocols",
    "TLSAdapter",
    "TLSOptions",
    "create_server_context",
]
