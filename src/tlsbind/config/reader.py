"""Read endpoint and certificate descriptors from configuration.

Expected layout::

    [Endpoints.Web]
    Url = "https://*:5001"

    [Endpoints.Web.Certificate]
    Path = "certs/web.pfx"
    Password = "secret"
"""

from dataclasses import dataclass
from functools import cached_property

from ..logging.structured import get_logger
from .section import ConfigSection

logger = get_logger(__name__)

ENDPOINTS_KEY = "Endpoints"
URL_KEY = "Url"
CERTIFICATE_KEY = "Certificate"


@dataclass(frozen=True)
class EndpointDescriptor:
    """One entry of the ``Endpoints`` section."""

    name: str
    url: str
    config_section: ConfigSection
    certificate_section: ConfigSection


class CertificateDescriptor:
    """Typed view over a ``Certificate`` configuration section.

    A section may describe both a file and a store certificate; callers
    resolving it give the file precedence.
    """

    def __init__(self, section: ConfigSection | None) -> None:
        self.section = section if section is not None else ConfigSection()

    @property
    def exists(self) -> bool:
        return len(self.section.get_children()) > 0

    @property
    def id(self) -> str:
        return self.section.key

    # File

    @property
    def path(self) -> str | None:
        return self.section.get("Path")

    @property
    def password(self) -> str | None:
        return self.section.get("Password")

    @property
    def is_file_cert(self) -> bool:
        return bool(self.path)

    # Store

    @property
    def subject(self) -> str | None:
        return self.section.get("Subject")

    @property
    def store(self) -> str | None:
        return self.section.get("Store")

    @property
    def location(self) -> str | None:
        return self.section.get("Location")

    @property
    def allow_invalid(self) -> bool | None:
        return self.section.get_bool("AllowInvalid")

    @property
    def is_store_cert(self) -> bool:
        return bool(self.subject)


class ConfigReader:
    """Lazily reads the ``Endpoints`` section into endpoint descriptors.

    The configuration root may be None, in which case there are no
    endpoints. The descriptors are computed on first access and cached
    for the lifetime of the reader.
    """

    def __init__(self, configuration: ConfigSection | None) -> None:
        self._configuration = configuration

    @cached_property
    def endpoints(self) -> tuple[EndpointDescriptor, ...]:
        if self._configuration is None:
            return ()

        endpoints = []
        for section in self._configuration.get_section(ENDPOINTS_KEY).get_children():
            url = section.get(URL_KEY)
            if not url:
                logger.debug("endpoint_skipped", name=section.key, reason="missing_url")
                continue

            endpoints.append(
                EndpointDescriptor(
                    name=section.key,
                    url=url,
                    config_section=section,
                    certificate_section=section.get_section(CERTIFICATE_KEY),
                )
            )
        return tuple(endpoints)
