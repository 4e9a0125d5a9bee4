"""The configuration context shared by endpoint builders and listeners."""

from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import ConfigurationError
from .listener import AddressKind, ListenOptions
from .security.development import DefaultCertificateProvider, DevelopmentCertificateProvider
from .security.store import CertificateStoreResolver
from .security.tls import TLSOptions

if TYPE_CHECKING:
    from .config.section import ConfigSection
    from .config_builder import EndpointConfigBuilder

ConfigureListener = Callable[[ListenOptions], None]
ConfigureTLS = Callable[[TLSOptions], None]


def _no_defaults(options: object) -> None:
    pass


class BuilderState(Enum):
    IDLE = "idle"
    DONE = "done"


class ServerOptions:
    """Endpoints and TLS defaults for one server.

    Holds the final endpoint list, the process-wide endpoint and TLS
    default callbacks, and the collaborators used to resolve certificates:
    the content root for relative certificate paths, the store resolver
    and the default certificate provider.

    Not thread-safe. Build each instance from a single thread.
    """

    def __init__(
        self,
        content_root: str | Path | None = None,
        default_certificate_provider: DefaultCertificateProvider | None = None,
        store_resolver: CertificateStoreResolver | None = None,
    ) -> None:
        self.content_root = Path(content_root) if content_root is not None else Path.cwd()
        self.default_certificate_provider = (
            default_certificate_provider or DevelopmentCertificateProvider()
        )
        self.store_resolver = store_resolver or CertificateStoreResolver()
        self.listen_options: list[ListenOptions] = []
        self.configuration_builder: "EndpointConfigBuilder | None" = None
        self._endpoint_defaults: ConfigureListener | None = None
        self._https_defaults: ConfigureTLS | None = None

    @property
    def endpoint_defaults(self) -> ConfigureListener:
        return self._endpoint_defaults or _no_defaults

    @property
    def https_defaults(self) -> ConfigureTLS:
        return self._https_defaults or _no_defaults

    def configure_endpoint_defaults(self, configure: ConfigureListener) -> None:
        """Register the callback applied to every endpoint before its own settings.

        Raises:
            ConfigurationError: If ``configure`` is None or defaults were
                already registered.
        """
        if configure is None:
            raise ConfigurationError("configure must not be None")
        if self._endpoint_defaults is not None:
            raise ConfigurationError("Endpoint defaults are already configured")
        self._endpoint_defaults = configure

    def configure_https_defaults(self, configure: ConfigureTLS) -> None:
        """Register the callback applied to every new ``TLSOptions``.

        Raises:
            ConfigurationError: If ``configure`` is None or defaults were
                already registered.
        """
        if configure is None:
            raise ConfigurationError("configure must not be None")
        if self._https_defaults is not None:
            raise ConfigurationError("HTTPS defaults are already configured")
        self._https_defaults = configure

    def configure(self, configuration: "ConfigSection | None") -> "EndpointConfigBuilder":
        """Create the builder for configuration-declared endpoints.

        The builder replaces any pending one and stays idle until
        ``build()`` (or ``build_endpoints()``) runs.
        """
        from .config_builder import EndpointConfigBuilder

        builder = EndpointConfigBuilder(self, configuration)
        self.configuration_builder = builder
        return builder

    def builder_state(self, builder: "EndpointConfigBuilder") -> BuilderState:
        if self.configuration_builder is builder:
            return BuilderState.IDLE
        return BuilderState.DONE

    def build_endpoints(self) -> list[ListenOptions]:
        """Run the pending configuration build, if any, and return all endpoints."""
        if self.configuration_builder is not None:
            self.configuration_builder.build()
        return list(self.listen_options)

    def listen(
        self,
        host: str,
        port: int,
        configure: ConfigureListener | None = None,
        kind: AddressKind = AddressKind.IP,
    ) -> ListenOptions:
        """Add a programmatic endpoint bound to ``host:port``."""
        listener = ListenOptions(host=host, port=port, kind=kind, server_options=self)
        return self._add_listener(listener, configure)

    def listen_localhost(
        self, port: int, configure: ConfigureListener | None = None
    ) -> ListenOptions:
        return self.listen("localhost", port, configure, kind=AddressKind.LOCALHOST)

    def listen_any_ip(
        self, port: int, configure: ConfigureListener | None = None
    ) -> ListenOptions:
        return self.listen("*", port, configure, kind=AddressKind.ANY_IP)

    def listen_unix_socket(
        self, socket_path: str, configure: ConfigureListener | None = None
    ) -> ListenOptions:
        if not socket_path:
            raise ConfigurationError("socket_path must not be empty")
        listener = ListenOptions(
            kind=AddressKind.UNIX_SOCKET, socket_path=socket_path, server_options=self
        )
        return self._add_listener(listener, configure)

    def _add_listener(
        self, listener: ListenOptions, configure: ConfigureListener | None
    ) -> ListenOptions:
        self.endpoint_defaults(listener)
        if configure is not None:
            configure(listener)
        self.listen_options.append(listener)
        return listener
