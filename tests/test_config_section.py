"""Tests for configuration sections and loading."""

from pathlib import Path

import pytest
import tomli_w

from tlsbind.config.section import ConfigSection, load_configuration, merge
from tlsbind.errors import ConfigurationError


@pytest.fixture
def root() -> ConfigSection:
    return ConfigSection.from_mapping(
        {
            "Endpoints": {
                "Web": {"Url": "https://*:5001", "Certificate": {"AllowInvalid": True}},
                "Admin": {"Url": "http://localhost:5000"},
            },
            "Port": 8080,
        }
    )


class TestConfigSection:
    """Tests for reading values and sections."""

    def test_get_value_by_path(self, root: ConfigSection):
        assert root.get("Endpoints:Web:Url") == "https://*:5001"
        assert root.get_section("Endpoints").get_section("Web")["Url"] == "https://*:5001"

    def test_lookup_is_case_insensitive(self, root: ConfigSection):
        section = root.get_section("endpoints:WEB")
        assert section.key == "Web"
        assert section.path == "Endpoints:Web"
        assert section.get("url") == "https://*:5001"

    def test_missing_keys(self, root: ConfigSection):
        missing = root.get_section("Nope:Deeper")
        assert not missing.exists()
        assert missing.get_children() == []
        assert missing.value is None
        assert root.get("Nope", "fallback") == "fallback"

    def test_children_keep_declaration_order(self, root: ConfigSection):
        names = [child.key for child in root.get_section("Endpoints").get_children()]
        assert names == ["Web", "Admin"]

    def test_scalars_are_strings(self, root: ConfigSection):
        assert root.get("Port") == "8080"
        assert root.get("Endpoints:Web:Certificate:AllowInvalid") == "true"

    def test_get_bool(self, root: ConfigSection):
        assert root.get_section("Endpoints:Web:Certificate").get_bool("AllowInvalid") is True
        assert root.get_bool("Missing") is None

        section = ConfigSection.from_mapping({"A": "False", "B": "maybe", "C": ""})
        assert section.get_bool("A") is False
        assert section.get_bool("C") is None
        with pytest.raises(ConfigurationError, match="Invalid boolean"):
            section.get_bool("B")

    def test_lists_become_indexed_children(self):
        section = ConfigSection.from_mapping({"Hosts": ["a", "b"]})
        assert section.get("Hosts:1") == "b"
        assert [c.key for c in section.get_section("Hosts").get_children()] == ["0", "1"]

    def test_empty_section_does_not_exist(self):
        section = ConfigSection.from_mapping({"Certificate": {}})
        assert not section.get_section("Certificate").exists()


class TestLoading:
    """Tests for TOML and environment sources."""

    def test_from_toml(self, tmp_path: Path):
        path = tmp_path / "server.toml"
        with open(path, "wb") as f:
            tomli_w.dump({"Endpoints": {"Web": {"Url": "http://*:80"}}}, f)

        assert ConfigSection.from_toml(path).get("Endpoints:Web:Url") == "http://*:80"

    def test_invalid_toml(self, tmp_path: Path):
        path = tmp_path / "server.toml"
        path.write_text("[Endpoints\n")

        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            ConfigSection.from_toml(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="Cannot read"):
            load_configuration(tmp_path / "absent.toml", environ={})

    def test_from_environ(self):
        environ = {
            "TLSBIND_Endpoints__Web__Url": "https://*:5001",
            "TLSBIND_Endpoints__Web__Certificate__Subject": "localhost",
            "OTHER_Endpoints__Ignored__Url": "http://*:1",
        }
        section = ConfigSection.from_environ(environ)

        assert section.get("Endpoints:Web:Url") == "https://*:5001"
        assert section.get("Endpoints:Web:Certificate:Subject") == "localhost"
        assert section.get("Endpoints:Ignored:Url") is None

    def test_environment_overlays_file(self, tmp_path: Path):
        path = tmp_path / "server.toml"
        with open(path, "wb") as f:
            tomli_w.dump(
                {
                    "Endpoints": {
                        "Web": {"Url": "http://*:80"},
                        "Api": {"Url": "http://*:81"},
                    }
                },
                f,
            )
        environ = {
            "TLSBIND_ENDPOINTS__WEB__URL": "https://*:443",
            "TLSBIND_Endpoints__Extra__Url": "http://*:82",
        }

        root = load_configuration(path, environ=environ)
        children = root.get_section("Endpoints").get_children()

        assert [c.key for c in children] == ["Web", "Api", "Extra"]
        assert root.get("Endpoints:Web:Url") == "https://*:443"

    def test_merge_replaces_scalars_with_sections(self):
        merged = merge({"A": "1"}, {"a": {"B": "2"}})
        assert merged == {"A": {"B": "2"}}
