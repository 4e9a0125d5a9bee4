"""tlsbind - endpoint and TLS certificate configuration for servers."""

from .config import ConfigSection, load_configuration
from .config_builder import EndpointConfigBuilder, EndpointConfiguration
from .errors import (
    CertificateLoadError,
    CertificateNotFoundError,
    ConfigurationError,
    MissingCertificateError,
    TLSBindError,
)
from .https import (
    use_https,
    use_https_from_file,
    use_https_from_store,
    use_https_with_certificate,
    use_https_with_options,
)
from .listener import AddressKind, ListenOptions, parse_address
from .server_options import BuilderState, ServerOptions

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "ConfigSection",
    "load_configuration",
    "EndpointConfigBuilder",
    "EndpointConfiguration",
    "ServerOptions",
    "BuilderState",
    # Listeners
    "AddressKind",
    "ListenOptions",
    "parse_address",
    "use_https",
    "use_https_from_file",
    "use_https_from_store",
    "use_https_with_certificate",
    "use_https_with_options",
    # Errors
    "TLSBindError",
    "ConfigurationError",
    "CertificateLoadError",
    "CertificateNotFoundError",
    "MissingCertificateError",
]
