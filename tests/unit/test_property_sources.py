"""Tests for structured file readers and ConfigMap/Secret translation."""

from __future__ import annotations

import base64

import pytest

from kubesource.configuration.readers import (
    JsonPropertySourceReader,
    PropertiesPropertySourceReader,
    YamlPropertySourceReader,
    file_extension,
    flatten,
    reader_for,
)
from kubesource.configuration.transform import as_property_sources, is_opaque_secret
from kubesource.errors import PropertySourceReadError
from kubesource.models.properties import PropertySourceOrigin
from kubesource.models.resources import Resource

# ---------------------------------------------------------------------------
# Helper factories
# ---------------------------------------------------------------------------


def _make_config_map(data: dict[str, str], name: str = "app-config", resource_version: str = "7") -> Resource:
    return Resource(
        kind="ConfigMap",
        namespace="default",
        name=name,
        resource_version=resource_version,
        payload={"data": data},
    )


def _make_secret(data: dict[str, str], name: str = "app-secret", secret_type: str = "Opaque") -> Resource:
    encoded = {k: base64.b64encode(v.encode()).decode() for k, v in data.items()}
    return Resource(
        kind="Secret",
        namespace="default",
        name=name,
        resource_version="3",
        payload={"data": encoded, "type": secret_type},
    )


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------


class TestFlatten:
    def test_nested_mappings_and_lists(self) -> None:
        assert flatten({"server": {"port": 8080, "hosts": ["a", "b"]}}) == {
            "server.port": 8080,
            "server.hosts[0]": "a",
            "server.hosts[1]": "b",
        }


class TestReaders:
    def test_yaml_documents_are_merged(self) -> None:
        content = "server:\n  port: 8080\n---\nserver:\n  port: 9090\nname: app\n"
        assert YamlPropertySourceReader().read("application.yaml", content) == {"server.port": 9090, "name": "app"}

    def test_invalid_yaml_raises(self) -> None:
        with pytest.raises(PropertySourceReadError):
            YamlPropertySourceReader().read("broken.yml", "key: [unclosed")

    def test_yaml_scalar_document_rejected(self) -> None:
        with pytest.raises(PropertySourceReadError):
            YamlPropertySourceReader().read("scalar.yml", "just text")

    def test_json(self) -> None:
        assert JsonPropertySourceReader().read("a.json", '{"db": {"url": "jdbc:x"}}') == {"db.url": "jdbc:x"}

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(PropertySourceReadError):
            JsonPropertySourceReader().read("a.json", "{nope")

    def test_properties(self) -> None:
        content = "# comment\n! also comment\ndb.url=jdbc:x\nname: app\nlong = one \\\n   two\n"
        assert PropertiesPropertySourceReader().read("a.properties", content) == {
            "db.url": "jdbc:x",
            "name": "app",
            "long": "one two",
        }

    def test_properties_whitespace_separator(self) -> None:
        content = "greeting hello world\n  indented   =  value\nflag\n"
        assert PropertiesPropertySourceReader().read("a.properties", content) == {
            "greeting": "hello world",
            "indented": "value",
            "flag": "",
        }

    def test_properties_escapes(self) -> None:
        content = "a\\=b=c\\:d\nkey\\ with\\ spaces=x\nsnow=\\u2603\ntab=one\\ttwo\n"
        assert PropertiesPropertySourceReader().read("a.properties", content) == {
            "a=b": "c:d",
            "key with spaces": "x",
            "snow": "\u2603",
            "tab": "one\ttwo",
        }

    def test_properties_continuation_counts_backslashes(self) -> None:
        content = "path=C:\\\\\nnext=1\nlong=a\\\\\\\n  b\n"
        assert PropertiesPropertySourceReader().read("a.properties", content) == {
            "path": "C:\\",
            "next": "1",
            "long": "a\\b",
        }

    def test_properties_comment_marker_inside_continuation_is_data(self) -> None:
        content = "list=one,\\\n   # two\n"
        assert PropertiesPropertySourceReader().read("a.properties", content) == {"list": "one,# two"}

    def test_properties_malformed_unicode_escape_raises(self) -> None:
        with pytest.raises(PropertySourceReadError):
            PropertiesPropertySourceReader().read("a.properties", "bad=\\u12\n")

    def test_extension_is_text_after_last_dot(self) -> None:
        assert file_extension("app.prod.yaml") == "yaml"
        assert file_extension("README") is None

    def test_reader_for_unknown_extension(self) -> None:
        assert reader_for("notes.txt") is None
        assert isinstance(reader_for("a.yml"), YamlPropertySourceReader)


# ---------------------------------------------------------------------------
# as_property_sources
# ---------------------------------------------------------------------------


class TestConfigMapTranslation:
    def test_multi_key_literal(self) -> None:
        sources = as_property_sources(_make_config_map({"a": "1", "b": "2"}))
        assert len(sources) == 1
        assert sources[0].name == "app-config (ConfigMap)"
        assert sources[0].priority == 0
        assert sources[0].data == {"a": "1", "b": "2"}
        assert sources[0].source_resource_version == "7"

    def test_single_file(self) -> None:
        sources = as_property_sources(_make_config_map({"application.yaml": "server:\n  port: 8080\n"}))
        assert [(s.name, s.priority, s.data) for s in sources] == [
            ("application.yaml (ConfigMap)", 100, {"server.port": 8080})
        ]

    def test_single_key_without_known_extension_is_literal(self) -> None:
        sources = as_property_sources(_make_config_map({"greeting": "hello"}))
        assert [(s.name, s.data) for s in sources] == [("app-config (ConfigMap)", {"greeting": "hello"})]

    def test_empty_data_has_no_sources(self) -> None:
        assert as_property_sources(_make_config_map({})) == []

    def test_reserved_marker_is_ignored(self) -> None:
        sources = as_property_sources(
            _make_config_map({"application.yaml": "a: 1\n", "configMapResourceVersion": "6"})
        )
        assert [s.name for s in sources] == ["application.yaml (ConfigMap)"]
        assert "configMapResourceVersion" not in sources[0].data

    def test_unreadable_file_raises(self) -> None:
        with pytest.raises(PropertySourceReadError):
            as_property_sources(_make_config_map({"application.json": "{oops"}))

    def test_same_version_translates_identically(self) -> None:
        resource = _make_config_map({"a": "1", "b": "2"})
        assert as_property_sources(resource) == as_property_sources(resource)


class TestSecretTranslation:
    def test_values_are_decoded(self) -> None:
        sources = as_property_sources(_make_secret({"username": "admin", "password": "s3cr3t"}))
        assert len(sources) == 1
        assert sources[0].name == "app-secret (Secret)"
        assert sources[0].priority == 100
        assert sources[0].origin == PropertySourceOrigin.SECRET
        assert sources[0].data == {"username": "admin", "password": "s3cr3t"}

    def test_single_file_secret(self) -> None:
        sources = as_property_sources(_make_secret({"db.properties": "db.password=x\n"}))
        assert [(s.name, s.data) for s in sources] == [("db.properties (Secret)", {"db.password": "x"})]

    def test_invalid_base64_raises(self) -> None:
        secret = Resource(kind="Secret", namespace="default", name="bad", payload={"data": {"k": "***"}})
        with pytest.raises(PropertySourceReadError):
            as_property_sources(secret)

    def test_opaque_detection(self) -> None:
        assert is_opaque_secret(_make_secret({"a": "b"})) is True
        assert is_opaque_secret(_make_secret({"a": "b"}, secret_type="kubernetes.io/tls")) is False

    def test_other_kinds_rejected(self) -> None:
        with pytest.raises(ValueError):
            as_property_sources(Resource(kind="Service", namespace="default", name="x"))
