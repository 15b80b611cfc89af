"""ConfigMap/Secret to PropertySource translation.

Classification of a resource's data map:

- more than one key, or a single key without a recognized file extension:
  one *multi-key literal* source named ``<resource> (<Kind>)``;
- exactly one key with a recognized extension (yml, yaml, json,
  properties): one *single-file* source named ``<key> (<Kind>)`` holding
  the parsed, flattened file;
- no keys: no source.

The reserved ``configMapResourceVersion`` key never takes part in the
classification and never appears in property data; the resource version is
carried by ``PropertySource.source_resource_version`` instead.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Mapping

from kubesource.configuration.readers import DEFAULT_READERS, PropertySourceReader, reader_for
from kubesource.errors import PropertySourceReadError
from kubesource.models.properties import (
    PRIORITY_FILE,
    PRIORITY_LITERAL,
    PropertySource,
    PropertySourceOrigin,
)
from kubesource.models.resources import Resource

CONFIG_MAP_RESOURCE_VERSION = "configMapResourceVersion"
OPAQUE_SECRET_TYPE = "Opaque"


def property_source_name(name: str, origin: PropertySourceOrigin) -> str:
    return f"{name} ({origin.value})"


def is_opaque_secret(resource: Resource) -> bool:
    return str(resource.payload.get("type") or OPAQUE_SECRET_TYPE) == OPAQUE_SECRET_TYPE


def decode_secret_data(resource: Resource) -> dict[str, str]:
    """Base64-decode every value of a Secret's ``data`` map as UTF-8 text."""
    decoded: dict[str, str] = {}
    for key, value in resource.data.items():
        try:
            decoded[key] = base64.b64decode(value, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise PropertySourceReadError(
                f"Secret {resource.namespace}/{resource.name} key {key!r} is not valid base64 UTF-8 text",
                source_name=resource.name,
            ) from exc
    return decoded


def data_as_property_sources(
    resource_name: str,
    data: Mapping[str, str],
    origin: PropertySourceOrigin,
    resource_version: str = "",
    literal_priority: int = PRIORITY_LITERAL,
    file_priority: int = PRIORITY_FILE,
    readers: tuple[PropertySourceReader, ...] = DEFAULT_READERS,
) -> list[PropertySource]:
    """Classify and convert a plain data map into property sources."""
    entries = {k: v for k, v in data.items() if k != CONFIG_MAP_RESOURCE_VERSION}
    if not entries:
        return []

    if len(entries) == 1:
        key, content = next(iter(entries.items()))
        reader = reader_for(key, readers)
        if reader is not None:
            return [
                PropertySource(
                    name=property_source_name(key, origin),
                    priority=file_priority,
                    data=reader.read(key, content),
                    origin=origin,
                    source_resource_version=resource_version,
                )
            ]

    return [
        PropertySource(
            name=property_source_name(resource_name, origin),
            priority=literal_priority,
            data=dict(entries),
            origin=origin,
            source_resource_version=resource_version,
        )
    ]


def as_property_sources(
    resource: Resource,
    readers: tuple[PropertySourceReader, ...] = DEFAULT_READERS,
) -> list[PropertySource]:
    """Translate a ConfigMap or Secret into its property sources.

    Raises:
        PropertySourceReadError: a file entry or secret value cannot be read.
        ValueError: *resource* is neither a ConfigMap nor a Secret.
    """
    origin = PropertySourceOrigin(resource.kind)
    if origin == PropertySourceOrigin.SECRET:
        return data_as_property_sources(
            resource.name,
            decode_secret_data(resource),
            origin,
            resource.resource_version,
            literal_priority=PRIORITY_FILE,
            file_priority=PRIORITY_FILE,
            readers=readers,
        )
    if origin == PropertySourceOrigin.CONFIG_MAP:
        return data_as_property_sources(
            resource.name, resource.data, origin, resource.resource_version, readers=readers
        )
    raise ValueError(f"{resource.kind} resources cannot be turned into property sources")
