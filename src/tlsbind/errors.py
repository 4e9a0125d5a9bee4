"""Exceptions raised while resolving certificates and building endpoints.

None of these are recoverable inside the library. They propagate to the
caller of ``EndpointConfigBuilder.build()``, which is expected to abort
server startup.
"""


class TLSBindError(Exception):
    """Base class for all tlsbind errors."""


class ConfigurationError(TLSBindError):
    """Raised for malformed configuration or invalid programmatic arguments.

    Covers unparsable endpoint URLs, unknown store locations, invalid
    boolean values, unreadable configuration files and ``None`` callbacks.
    """


class CertificateLoadError(TLSBindError):
    """Raised when a certificate file cannot be loaded.

    The file may be missing, malformed, protected by a different password,
    or lack a private key.
    """


class CertificateNotFoundError(TLSBindError):
    """Raised when a store lookup for a subject returns no certificates."""

    def __init__(self, subject: str, store_name: str, location: str) -> None:
        self.subject = subject
        self.store_name = store_name
        self.location = location
        super().__init__(
            f"The requested certificate {subject} could not be found in "
            f"{location}/{store_name}."
        )


class MissingCertificateError(TLSBindError):
    """Raised when a TLS endpoint has no certificate at attach time."""

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        super().__init__(
            f"TLS was requested for {endpoint} but no server certificate "
            "was configured and no development certificate was found."
        )
