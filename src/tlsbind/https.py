"""Attach TLS to a listener.

Every variant goes through ``use_https``: a fresh ``TLSOptions`` receives
the global TLS defaults registered on the listener's ``ServerOptions``,
then the caller's configuration, and the adapter is attached with
``use_https_with_options``.
"""

from collections.abc import Callable
from pathlib import Path

from .errors import ConfigurationError
from .listener import ListenOptions
from .security.certificates import ServerCertificate, load_certificate
from .security.store import CertificateStoreResolver, StoreLocation
from .security.tls import TLSAdapter, TLSOptions

ConfigureTLS = Callable[[TLSOptions], None]


def _no_configuration(options: TLSOptions) -> None:
    pass


def _require_callback(configure: ConfigureTLS | None) -> ConfigureTLS:
    if configure is None:
        raise ConfigurationError("configure must not be None")
    return configure


def _content_root(listener: ListenOptions) -> Path:
    if listener.server_options is not None:
        return listener.server_options.content_root
    return Path.cwd()


def use_https_with_options(listener: ListenOptions, options: TLSOptions) -> ListenOptions:
    """Attach a TLS adapter built from ``options``.

    Raises:
        MissingCertificateError: If ``options`` has no server certificate.
    """
    if options is None:
        raise ConfigurationError("options must not be None")
    options.protocols = listener.protocols
    listener.adapters.append(TLSAdapter(options, endpoint=listener.endpoint))
    return listener


def use_https(listener: ListenOptions, configure: ConfigureTLS) -> ListenOptions:
    """Attach TLS configured by ``configure`` on top of the global defaults."""
    configure = _require_callback(configure)

    options = TLSOptions()
    if listener.server_options is not None:
        listener.server_options.https_defaults(options)
    configure(options)
    return use_https_with_options(listener, options)


def use_https_with_certificate(
    listener: ListenOptions,
    certificate: ServerCertificate,
    configure: ConfigureTLS = _no_configuration,
) -> ListenOptions:
    configure = _require_callback(configure)

    def apply(options: TLSOptions) -> None:
        options.server_certificate = certificate
        configure(options)

    return use_https(listener, apply)


def use_https_from_file(
    listener: ListenOptions,
    file_name: str | Path,
    password: str | None = None,
    configure: ConfigureTLS = _no_configuration,
) -> ListenOptions:
    """Attach TLS using a certificate file relative to the content root.

    Raises:
        CertificateLoadError: If the file cannot be loaded.
    """
    configure = _require_callback(configure)
    certificate = load_certificate(_content_root(listener) / file_name, password)
    return use_https_with_certificate(listener, certificate, configure)


def use_https_from_store(
    listener: ListenOptions,
    store_name: str,
    subject: str,
    location: StoreLocation = StoreLocation.CURRENT_USER,
    allow_invalid: bool = True,
    configure: ConfigureTLS = _no_configuration,
) -> ListenOptions:
    """Attach TLS using the latest-expiring store certificate for ``subject``.

    Raises:
        CertificateNotFoundError: If the store has no matching certificate.
    """
    configure = _require_callback(configure)
    if listener.server_options is not None:
        resolver = listener.server_options.store_resolver
    else:
        resolver = CertificateStoreResolver()
    certificate = resolver.resolve(subject, store_name, location, not allow_invalid)
    return use_https_with_certificate(listener, certificate, configure)
