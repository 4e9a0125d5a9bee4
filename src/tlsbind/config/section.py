"""Hierarchical key/value configuration sections.

Configuration is a tree of sections. Leaves hold scalar values, exposed as
strings; inner nodes hold child sections in declaration order. Key lookups
are case-insensitive and ``:`` separates levels in a key path, so
``root.get("Endpoints:Web:Url")`` and
``root.get_section("Endpoints").get_section("Web").get("Url")`` agree.

Sources are a TOML file and environment variables. Environment variables
overlay the file: ``TLSBIND_Endpoints__Web__Url`` sets ``Endpoints:Web:Url``.
"""

import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from ..errors import ConfigurationError

KEY_DELIMITER = ":"
ENV_DELIMITER = "__"
DEFAULT_ENV_PREFIX = "TLSBIND_"

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


def _to_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _find_key(node: Mapping[str, Any], key: str) -> str | None:
    lowered = key.lower()
    for candidate in node:
        if candidate.lower() == lowered:
            return candidate
    return None


class ConfigSection:
    """A read-only view over one node of the configuration tree."""

    def __init__(self, node: Any = None, key: str = "", path: str = "") -> None:
        if isinstance(node, list):
            node = {str(index): item for index, item in enumerate(node)}
        self._node = node
        self.key = key
        self.path = path

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "ConfigSection":
        """Create a root section from a (nested) mapping."""
        return cls(dict(data) if data is not None else {})

    @classmethod
    def from_toml(cls, path: str | Path) -> "ConfigSection":
        """Create a root section from a TOML file.

        Raises:
            ConfigurationError: If the file cannot be read or parsed.
        """
        return cls(_read_toml(Path(path)))

    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, str] | None = None,
        prefix: str = DEFAULT_ENV_PREFIX,
    ) -> "ConfigSection":
        """Create a root section from prefixed environment variables."""
        return cls(_read_environ(os.environ if environ is None else environ, prefix))

    @property
    def value(self) -> str | None:
        """The scalar value of this section, or None for inner nodes."""
        if self._node is None or isinstance(self._node, Mapping):
            return None
        return _to_string(self._node)

    def get(self, key: str, default: str | None = None) -> str | None:
        """Return the scalar value at ``key``, or ``default``."""
        value = self.get_section(key).value
        return default if value is None else value

    def __getitem__(self, key: str) -> str | None:
        return self.get(key)

    def get_section(self, key: str) -> "ConfigSection":
        """Return the sub-section at ``key``.

        Always returns a section; a missing key yields an empty one, which
        can be checked with ``exists()``.
        """
        section = self
        for part in key.split(KEY_DELIMITER):
            section = section._child(part)
        return section

    def get_children(self) -> list["ConfigSection"]:
        """Return the direct child sections in declaration order."""
        if not isinstance(self._node, Mapping):
            return []
        return [self._child(name) for name in self._node]

    def _child(self, name: str) -> "ConfigSection":
        actual = _find_key(self._node, name) if isinstance(self._node, Mapping) else None
        if actual is None:
            node = None
        else:
            node = self._node[actual]
            name = actual
        path = f"{self.path}{KEY_DELIMITER}{name}" if self.path else name
        return ConfigSection(node, key=name, path=path)

    def get_bool(self, key: str) -> bool | None:
        """Parse the value at ``key`` as a boolean.

        Returns:
            None when the key is absent or empty.

        Raises:
            ConfigurationError: If the value is not a recognised boolean.
        """
        raw = self.get(key)
        if raw is None or raw.strip() == "":
            return None
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        location = f"{self.path}{KEY_DELIMITER}{key}" if self.path else key
        raise ConfigurationError(f"Invalid boolean value {raw!r} for {location}")

    def exists(self) -> bool:
        """True if the section has a value or at least one child."""
        if isinstance(self._node, Mapping):
            return len(self._node) > 0
        return self._node is not None

    def __repr__(self) -> str:
        return f"ConfigSection(path={self.path!r})"


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def _read_environ(environ: Mapping[str, str], prefix: str) -> dict[str, Any]:
    data: dict[str, Any] = {}
    lowered_prefix = prefix.lower()
    for name, value in environ.items():
        if not name.lower().startswith(lowered_prefix):
            continue
        parts = [part for part in name[len(prefix):].split(ENV_DELIMITER) if part]
        if not parts:
            continue
        node = data
        for part in parts[:-1]:
            actual = _find_key(node, part)
            if actual is None or not isinstance(node[actual], dict):
                actual = actual or part
                node[actual] = {}
            node = node[actual]
        node[_find_key(node, parts[-1]) or parts[-1]] = value
    return data


def merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto ``base``, matching keys case-insensitively.

    Existing keys keep their position and spelling; new keys are appended.
    """
    merged = dict(base)
    for key, value in overlay.items():
        actual = _find_key(merged, key)
        if actual is None:
            merged[key] = value
        elif isinstance(merged[actual], Mapping) and isinstance(value, Mapping):
            merged[actual] = merge(merged[actual], value)
        else:
            merged[actual] = value
    return merged


def load_configuration(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    prefix: str = DEFAULT_ENV_PREFIX,
) -> ConfigSection:
    """Load the configuration root from a TOML file and the environment.

    Args:
        path: Optional TOML file. Skipped when None.
        environ: Environment mapping, ``os.environ`` by default.
        prefix: Prefix selecting the environment variables to read.

    Returns:
        The root section, with environment values overlaying the file.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    data: dict[str, Any] = _read_toml(Path(path)) if path is not None else {}
    overlay = _read_environ(os.environ if environ is None else environ, prefix)
    return ConfigSection(merge(data, overlay))
