"""Listing ROM files with their metadata: loading, filtering, sorting and printing."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable, Iterator, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import Any, TextIO

import yaml

from famikit.cartridge import Cartridge, from_ines_file

log = logging.getLogger(__name__)

PATH_FIELD = "path"
NAME_FIELD = "name"
MAPPER_FIELD = "mapper"
BATTERY_FIELD = "battery"
MIRROR_FIELD = "mirror"
HASH_FIELD = "hash"

_MIRROR_NAMES = ("Horizontal", "Vertical", "SingleLower", "SingleUpper", "FourScreen")

_TRUE = ("1", "t", "T", "true", "TRUE", "True")
_FALSE = ("0", "f", "F", "false", "FALSE", "False")

_JSON_ESCAPES = (
    ("&", "\\u0026"),
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


class UnknownSortFieldError(ValueError):
    """Raised when entries are sorted by a field that does not exist."""


class InvalidFormatError(ValueError):
    """Raised for an output format that is not supported."""


class OutputFormat(IntEnum):
    """Ways of printing a listing."""

    TABLE = 0
    JSON = 1
    YAML = 2
    PATH = 3

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, text: str) -> OutputFormat:
        """Look up a format by name, ignoring case."""
        for fmt in cls:
            if str(fmt) in (text, text.lower()):
                return fmt
        raise InvalidFormatError(f"{text} does not belong to OutputFormat values")


def _resolve(value: Any) -> Any:
    return value() if callable(value) else value


def _mirror_name(mirror: Any) -> str:
    number = int(mirror)
    if 0 <= number < len(_MIRROR_NAMES):
        return _MIRROR_NAMES[number]
    return f"Mirror({number})"


@dataclass
class Entry:
    """Metadata of one ROM file."""

    path: str
    name: str
    mapper: int
    mirror: str
    battery: bool
    hash: str

    @classmethod
    def from_cartridge(cls, path: str, cart: Cartridge) -> Entry:
        """Build an entry for a cartridge loaded from ``path``."""
        header = cart.header.to_bytes()
        return cls(
            path=path,
            name=_resolve(cart.name) or "",
            mapper=int(_resolve(cart.header.mapper)),
            mirror=_mirror_name(cart.mirror),
            battery=bool(header[6] & 0x2),
            hash=_resolve(cart.hash) or "",
        )


def _walk(root: str) -> Iterator[str]:
    if os.path.isdir(root):
        def on_error(exc: OSError) -> None:
            log.error("Failed to load ROMs error=%s", exc)

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
            dirnames.sort()
            for filename in sorted(filenames):
                yield os.path.normpath(os.path.join(dirpath, filename))
    elif os.path.lexists(root):
        yield root
    else:
        raise FileNotFoundError(f"lstat {root}: no such file or directory")


def _load_one(path: str) -> tuple[str, Entry | None, Exception | None]:
    try:
        return path, Entry.from_cartridge(path, from_ines_file(path)), None
    except Exception as exc:  # every failure is reported per file
        return path, None, exc


def load_paths(paths: Sequence[str]) -> tuple[list[Entry], list[tuple[str, Exception]]]:
    """Load every ``.nes`` file found under ``paths`` (default: the current directory).

    Returns the loaded entries and a list of ``(path, error)`` for files that failed.
    """
    roots = list(paths) or ["."]
    files: list[str] = []
    for root in roots:
        try:
            files.extend(p for p in _walk(root) if os.path.splitext(p)[1].lower() == ".nes")
        except OSError as exc:
            log.error("Failed to load ROMs error=%s", exc)

    entries: list[Entry] = []
    failures: list[tuple[str, Exception]] = []
    if not files:
        return entries, failures
    with ThreadPoolExecutor() as pool:
        for path, entry, error in pool.map(_load_one, files):
            if entry is not None:
                entries.append(entry)
            elif error is not None:
                failures.append((path, error))
    return entries, failures


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid battery filter value: {text!r}")


def _parse_mapper(text: str) -> int:
    if not text.isdigit():
        raise ValueError(f"invalid mapper filter value: {text!r}")
    value = int(text)
    if value > 0xFF:
        raise ValueError(f"invalid mapper filter value: {text!r} out of range")
    return value


def _drop(entry: Entry, filters: Mapping[str, str]) -> bool:
    for field_name, value in filters.items():
        key = field_name.lower()
        if key == NAME_FIELD:
            return value.lower() not in entry.name.lower()
        if key == MAPPER_FIELD:
            return _parse_mapper(value) != entry.mapper
        if key == MIRROR_FIELD:
            return value.lower() not in entry.mirror.lower()
        if key == BATTERY_FIELD:
            return _parse_bool(value) != entry.battery
        if key == HASH_FIELD:
            return value != entry.hash
    return False


def filter_entries(entries: Iterable[Entry], filters: Mapping[str, str]) -> list[Entry]:
    """Keep the entries matching the first recognised filter field."""
    entries = list(entries)
    if not filters:
        return entries
    return [entry for entry in entries if not _drop(entry, filters)]


_SORT_KEYS = {
    PATH_FIELD: lambda e: e.path,
    NAME_FIELD: lambda e: e.name,
    MAPPER_FIELD: lambda e: e.mapper,
    BATTERY_FIELD: lambda e: e.battery,
    MIRROR_FIELD: lambda e: e.mirror,
}


def sort_entries(entries: Iterable[Entry], field: str) -> list[Entry]:
    """Entries sorted by ``field``; an empty field leaves the order unchanged."""
    entries = list(entries)
    if not field:
        return entries
    key = _SORT_KEYS.get(field.lower())
    if key is None:
        if len(entries) < 2:
            return entries
        raise UnknownSortFieldError(f"unknown sort field: {field.lower()}")
    return sorted(entries, key=key)


def _tabwrite(rows: Sequence[Sequence[str]], padding: int = 3) -> str:
    widths = [max(len(row[i]) for row in rows) + padding for i in range(len(rows[0]))]
    return "".join(
        "".join(cell.ljust(width) for cell, width in zip(row, widths)) + "\n" for row in rows
    )


def _table(entries: Sequence[Entry]) -> str:
    rows = [["FILE", "NAME", "MAPPER", "MIRROR", "BATTERY", "HASH"]]
    rows.extend(
        [e.path, e.name, str(e.mapper), e.mirror, "true" if e.battery else "false", e.hash]
        for e in entries
    )
    return _tabwrite(rows)


def print_entries(out: TextIO, entries: Sequence[Entry], output_format: OutputFormat) -> None:
    """Write the entries to ``out`` in the given format."""
    try:
        fmt = OutputFormat(output_format)
    except ValueError:
        raise InvalidFormatError(f"invalid format: OutputFormat({output_format})") from None

    if fmt is OutputFormat.TABLE:
        out.write(_table(entries))
    elif fmt is OutputFormat.JSON:
        text = json.dumps([asdict(e) for e in entries], indent=2, ensure_ascii=False)
        for char, escaped in _JSON_ESCAPES:
            text = text.replace(char, escaped)
        out.write(text + "\n")
    elif fmt is OutputFormat.YAML:
        out.write(
            yaml.safe_dump(
                [asdict(e) for e in entries],
                sort_keys=False,
                allow_unicode=True,
                default_flow_style=False,
            )
        )
    else:
        for entry in entries:
            out.write(entry.path + "\n")