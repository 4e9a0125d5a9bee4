"""Build the server's endpoints from configuration.

For each configured endpoint, in declaration order:

1. Parse the bind URL and apply the global endpoint defaults.
2. For ``https`` endpoints, create ``TLSOptions``, apply the global TLS
   defaults and resolve the certificate: one already set by the defaults,
   else the configured file, else the configured store subject, else the
   default (development) certificate provider.
3. Run the per-endpoint override registered with ``endpoint(name, ...)``.
4. Attach the TLS adapter unless the override already attached one. A TLS
   endpoint without a certificate fails here.

Endpoints are committed to ``ServerOptions.listen_options`` only after all
of them succeed.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .config.reader import CertificateDescriptor, ConfigReader, EndpointDescriptor
from .config.section import ConfigSection
from .errors import ConfigurationError, TLSBindError
from .https import use_https_with_options
from .listener import ListenOptions, parse_address
from .logging.structured import get_logger
from .security.certificates import load_certificate
from .security.store import StoreLocation
from .security.tls import TLSOptions

if TYPE_CHECKING:
    from .server_options import BuilderState, ServerOptions

logger = get_logger(__name__)


@dataclass
class EndpointConfiguration:
    """What a per-endpoint override sees and may change.

    Setting ``https`` to None disables TLS for the endpoint; replacing or
    mutating it changes what the adapter is built from.
    """

    listener: ListenOptions
    https: TLSOptions | None
    config_section: ConfigSection


class EndpointConfigBuilder:
    """Turns the ``Endpoints`` configuration section into listen endpoints.

    Created by ``ServerOptions.configure()``. ``build()`` runs once; later
    calls do nothing.
    """

    def __init__(self, options: "ServerOptions", configuration: ConfigSection | None) -> None:
        if options is None:
            raise ConfigurationError("options must not be None")
        self.options = options
        self.configuration = configuration
        self._endpoint_configurations: dict[str, Callable[[EndpointConfiguration], None]] = {}

    @property
    def state(self) -> "BuilderState":
        return self.options.builder_state(self)

    def endpoint(
        self, name: str, configure: Callable[[EndpointConfiguration], None]
    ) -> "EndpointConfigBuilder":
        """Register an override for the configured endpoint called ``name``.

        A later registration for the same name replaces the earlier one.
        """
        if not name:
            raise ConfigurationError("name must not be empty")
        if configure is None:
            raise ConfigurationError("configure must not be None")
        self._endpoint_configurations[name] = configure
        return self

    def build(self) -> None:
        """Resolve and append all configured endpoints.

        Raises:
            ConfigurationError: For an unparsable URL or invalid settings.
            CertificateLoadError: If a certificate file cannot be loaded.
            CertificateNotFoundError: If a store subject has no match.
            MissingCertificateError: If a TLS endpoint ends up without a
                certificate.
        """
        if self.options.configuration_builder is not self:
            return
        self.options.configuration_builder = None

        staged: list[ListenOptions] = []
        for endpoint in ConfigReader(self.configuration).endpoints:
            try:
                staged.append(self._build_endpoint(endpoint))
            except TLSBindError as e:
                logger.error(
                    "endpoint_build_failed",
                    name=endpoint.name,
                    url=endpoint.url,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

        self.options.listen_options.extend(staged)

    def _build_endpoint(self, endpoint: EndpointDescriptor) -> ListenOptions:
        listener, https = parse_address(endpoint.url)
        listener.name = endpoint.name
        listener.server_options = self.options
        self.options.endpoint_defaults(listener)

        tls_options = None
        source = None
        if https:
            tls_options = TLSOptions()
            self.options.https_defaults(tls_options)
            source = self._resolve_certificate(
                tls_options, CertificateDescriptor(endpoint.certificate_section)
            )

        endpoint_config = EndpointConfiguration(
            listener, tls_options, endpoint.config_section
        )
        configure_endpoint = self._endpoint_configurations.get(endpoint.name)
        if configure_endpoint is not None:
            configure_endpoint(endpoint_config)

        if endpoint_config.https is not None and not listener.is_tls:
            use_https_with_options(listener, endpoint_config.https)

        adapter = listener.tls_adapter
        logger.info(
            "endpoint_configured",
            name=endpoint.name,
            address=listener.endpoint,
            tls=adapter is not None,
            certificate_source=source,
            fingerprint=adapter.certificate.fingerprint if adapter is not None else None,
        )
        return listener

    def _resolve_certificate(
        self, options: TLSOptions, certificate: CertificateDescriptor
    ) -> str | None:
        """Fill ``options.server_certificate`` and return where it came from."""
        if options.server_certificate is not None:
            return "defaults"

        if certificate.is_file_cert:
            path = self.options.content_root / certificate.path
            options.server_certificate = load_certificate(path, certificate.password)
            return "file"

        if certificate.is_store_cert:
            location = StoreLocation.parse(certificate.location)
            valid_only = not (certificate.allow_invalid or False)
            options.server_certificate = self.options.store_resolver.resolve(
                certificate.subject, certificate.store or "", location, valid_only
            )
            return "store"

        options.server_certificate = self.options.default_certificate_provider.certificate()
        if options.server_certificate is None:
            return None
        return "development"
