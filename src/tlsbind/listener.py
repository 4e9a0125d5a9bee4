"""Listen endpoints and bind URL parsing."""

import ipaddress
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from .errors import ConfigurationError
from .logging.structured import get_logger
from .security.tls import HttpProtocols

if TYPE_CHECKING:
    from .server_options import ServerOptions

logger = get_logger(__name__)

UNIX_PREFIX = "unix:"
ANY_HOSTS = {"*", "+", "0.0.0.0", "::"}
DEFAULT_PORTS = {"http": 80, "https": 443}


class AddressKind(Enum):
    ANY_IP = "any"
    LOCALHOST = "localhost"
    IP = "ip"
    UNIX_SOCKET = "unix"


class ListenOptions:
    """A single endpoint the server will bind, with its connection adapters."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        kind: AddressKind = AddressKind.IP,
        socket_path: str | None = None,
        server_options: "ServerOptions | None" = None,
    ) -> None:
        self.host = host
        self.port = port
        self.kind = kind
        self.socket_path = socket_path
        self.server_options = server_options
        self.protocols = HttpProtocols.HTTP1
        self.adapters: list[Any] = []
        self.name: str | None = None

    @property
    def endpoint(self) -> str:
        if self.kind is AddressKind.UNIX_SOCKET:
            return f"{UNIX_PREFIX}{self.socket_path}"
        if self.host and ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    @property
    def is_tls(self) -> bool:
        return any(getattr(adapter, "is_tls", False) for adapter in self.adapters)

    @property
    def tls_adapter(self) -> Any:
        for adapter in self.adapters:
            if getattr(adapter, "is_tls", False):
                return adapter
        return None

    def __repr__(self) -> str:
        return f"ListenOptions({self.endpoint!r}, tls={self.is_tls})"


def parse_address(url: str) -> tuple[ListenOptions, bool]:
    """Parse a bind URL into listen options.

    Accepts ``http`` and ``https`` URLs such as ``https://*:5001``,
    ``http://localhost:5000``, ``http://[::1]:8080`` and
    ``http://unix:/run/app.sock``.

    Returns:
        Tuple of (listen options, True if the scheme is https).

    Raises:
        ConfigurationError: If the URL cannot be parsed.
    """
    if not url or "://" not in url:
        raise ConfigurationError(f"Invalid url: {url!r}")

    scheme, _, rest = url.partition("://")
    scheme = scheme.lower()
    if scheme not in DEFAULT_PORTS:
        raise ConfigurationError(f"Unrecognized scheme in server address {url!r}")
    https = scheme == "https"

    if rest.lower().startswith(UNIX_PREFIX):
        socket_path = rest[len(UNIX_PREFIX):]
        if not socket_path:
            raise ConfigurationError(f"Missing socket path in server address {url!r}")
        return ListenOptions(kind=AddressKind.UNIX_SOCKET, socket_path=socket_path), https

    try:
        parts = urlsplit(f"{scheme}://{rest}")
        port = parts.port
        host = parts.hostname
    except ValueError as e:
        raise ConfigurationError(f"Invalid url {url!r}: {e}") from e

    if parts.path not in ("", "/") or parts.query or parts.fragment:
        raise ConfigurationError(
            f"A path base can only be configured through the application, not the url {url!r}"
        )
    if not host:
        raise ConfigurationError(f"Missing host in server address {url!r}")
    if port is None:
        port = DEFAULT_PORTS[scheme]

    if host in ANY_HOSTS:
        return ListenOptions(host=host, port=port, kind=AddressKind.ANY_IP), https
    if host.lower() == "localhost":
        return ListenOptions(host="localhost", port=port, kind=AddressKind.LOCALHOST), https

    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        logger.warning(
            "binding_host_to_any_ip",
            url=url,
            host=host,
            reason="host names are not resolved for binding",
        )
        return ListenOptions(host=host, port=port, kind=AddressKind.ANY_IP), https

    kind = AddressKind.ANY_IP if address.is_unspecified else AddressKind.IP
    return ListenOptions(host=str(address), port=port, kind=kind), https
