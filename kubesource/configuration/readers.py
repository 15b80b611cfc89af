"""Structured file readers used for single-file property sources.

Each reader declares the file extensions it handles and parses file content
into a flat property map: nested mappings become dotted keys and sequence
items become ``key[index]``.
"""

from __future__ import annotations

import json
import string
from collections.abc import Iterator, Mapping
from typing import Any, Protocol

import yaml

from kubesource.errors import PropertySourceReadError


class PropertySourceReader(Protocol):
    @property
    def extensions(self) -> frozenset[str]: ...

    def read(self, name: str, content: str) -> dict[str, Any]: ...


def flatten(value: Any, prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings and sequences into dotted property keys."""
    flat: dict[str, Any] = {}
    if isinstance(value, Mapping):
        for key, child in value.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            flat.update(flatten(child, path))
    elif isinstance(value, list):
        for index, child in enumerate(value):
            flat.update(flatten(child, f"{prefix}[{index}]"))
    elif prefix:
        flat[prefix] = value
    return flat


class YamlPropertySourceReader:
    extensions = frozenset({"yml", "yaml"})

    def read(self, name: str, content: str) -> dict[str, Any]:
        try:
            documents = [doc for doc in yaml.safe_load_all(content) if doc is not None]
        except yaml.YAMLError as exc:
            raise PropertySourceReadError(f"Invalid YAML in {name}: {exc}", source_name=name) from exc
        flat: dict[str, Any] = {}
        for doc in documents:
            if not isinstance(doc, Mapping):
                raise PropertySourceReadError(f"YAML document in {name} is not a mapping", source_name=name)
            flat.update(flatten(doc))
        return flat


class JsonPropertySourceReader:
    extensions = frozenset({"json"})

    def read(self, name: str, content: str) -> dict[str, Any]:
        try:
            doc = json.loads(content) if content.strip() else {}
        except json.JSONDecodeError as exc:
            raise PropertySourceReadError(f"Invalid JSON in {name}: {exc}", source_name=name) from exc
        if not isinstance(doc, Mapping):
            raise PropertySourceReadError(f"JSON document in {name} is not an object", source_name=name)
        return flatten(doc)


class PropertiesPropertySourceReader:
    """Reads ``.properties`` files the way ``java.util.Properties.load`` does.

    - ``#`` and ``!`` start a comment line.
    - A line ending in an odd number of backslashes continues on the next
      line, whose leading whitespace is dropped.
    - The key ends at the first unescaped ``=``, ``:`` or whitespace.
    - Escapes ``\\t``, ``\\n``, ``\\r``, ``\\f`` and ``\\uXXXX`` are
      decoded, and any other escaped character stands for itself.
    """

    extensions = frozenset({"properties"})

    def read(self, name: str, content: str) -> dict[str, Any]:
        flat: dict[str, Any] = {}
        for line in _logical_lines(content):
            key, value = _split_entry(line)
            flat[_unescape(key, name)] = _unescape(value, name)
        return flat


_WHITESPACE = " \t\f"
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


def _logical_lines(content: str) -> Iterator[str]:
    parts: list[str] = []
    continuing = False
    for raw_line in content.splitlines():
        line = raw_line.lstrip(_WHITESPACE)
        if not continuing and (not line or line[0] in "#!"):
            continue
        backslashes = len(line) - len(line.rstrip("\\"))
        continuing = backslashes % 2 == 1
        parts.append(line[:-1] if continuing else line)
        if not continuing:
            yield "".join(parts)
            parts = []
    if parts:
        yield "".join(parts)


def _split_entry(line: str) -> tuple[str, str]:
    index = 0
    while index < len(line):
        char = line[index]
        if char == "\\":
            index += 2
            continue
        if char in "=:" or char in _WHITESPACE:
            break
        index += 1
    key = line[:index]
    rest = line[index:].lstrip(_WHITESPACE)
    if rest[:1] in ("=", ":"):
        rest = rest[1:].lstrip(_WHITESPACE)
    return key, rest


def _unescape(text: str, name: str) -> str:
    if "\\" not in text:
        return text
    out: list[str] = []
    index = 0
    while index < len(text):
        char = text[index]
        index += 1
        if char != "\\":
            out.append(char)
            continue
        if index >= len(text):
            break
        char = text[index]
        index += 1
        if char == "u":
            digits = text[index : index + 4]
            if len(digits) != 4 or any(d not in string.hexdigits for d in digits):
                raise PropertySourceReadError(f"Malformed \\uXXXX escape in {name}", source_name=name)
            out.append(chr(int(digits, 16)))
            index += 4
            continue
        out.append(_ESCAPES.get(char, char))
    return "".join(out)


DEFAULT_READERS: tuple[PropertySourceReader, ...] = (
    YamlPropertySourceReader(),
    JsonPropertySourceReader(),
    PropertiesPropertySourceReader(),
)


def file_extension(filename: str) -> str | None:
    """Text after the last dot, or None when the name has no dot."""
    if "." not in filename:
        return None
    return filename.rsplit(".", 1)[1]


def reader_for(
    filename: str,
    readers: tuple[PropertySourceReader, ...] = DEFAULT_READERS,
) -> PropertySourceReader | None:
    extension = file_extension(filename)
    if extension is None:
        return None
    for reader in readers:
        if extension in reader.extensions:
            return reader
    return None
