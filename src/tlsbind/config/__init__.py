"""Configuration sections and endpoint descriptors."""

from .reader import CertificateDescriptor, ConfigReader, EndpointDescriptor
from .section import ConfigSection, load_configuration

__all__ = [
    "CertificateDescriptor",
    "ConfigReader",
    "ConfigSection",
    "EndpointDescriptor",
    "load_configuration",
]
