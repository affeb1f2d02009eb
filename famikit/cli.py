"""The ``nesutil`` command: ROM listing, iNES, CHR and Game Genie utilities."""

from __future__ import annotations

import argparse
import csv
import logging
import re
import sys
from collections.abc import Sequence

from famikit.chr import DEFAULT_PALETTE, decode_file, encode_file
from famikit.genie import InvalidCharacterError, InvalidCodeLengthError, decode, encode
from famikit.ines_tools import create_rom, extract_rom, parse_mirror
from famikit.listing import (
    OutputFormat,
    filter_entries,
    load_paths,
    print_entries,
    sort_entries,
)

log = logging.getLogger(__name__)

_TRUE = ("1", "t", "T", "true", "TRUE", "True")
_FALSE = ("0", "f", "F", "false", "FALSE", "False")
_HEX_RE = re.compile(r"[+-]?[0-9a-fA-F]+")


class _JoinedError(Exception):
    """Several errors reported together, one per line."""


def build_version(version: str = "", commit: str = "", modified: bool = False) -> str:
    """Combine a release version with a short commit id, marking modified trees with ``*``."""
    if commit:
        commit = commit[:8]
        if modified:
            commit = "*" + commit
        version = commit if not version else f"{version} ({commit})"
    return version


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: {text!r}")


def _uint8(text: str) -> int:
    try:
        value = int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid uint8 value: {text!r}") from None
    if not 0 <= value <= 0xFF:
        raise argparse.ArgumentTypeError(f"value out of range: {text!r}")
    return value


def _parse_hex(text: str, bits: int) -> int:
    if not _HEX_RE.fullmatch(text):
        raise ValueError(f"invalid hex value: {text!r}")
    value = int(text, 16)
    limit = 1 << (bits - 1)
    if not -limit <= value < limit:
        raise ValueError(f"hex value out of range: {text!r}")
    return value


def _csv_items(text: str) -> list[str]:
    return next(csv.reader([text]), [])


class _ListAction(argparse.Action):
    """Comma-separated values; repeating the flag appends."""

    def __call__(self, parser, namespace, values, option_string=None):
        current = list(getattr(namespace, self.dest) or [])
        setattr(namespace, self.dest, current + _csv_items(values))


class _MappingAction(argparse.Action):
    """Comma-separated ``key=value`` pairs; repeating the flag merges."""

    def __call__(self, parser, namespace, values, option_string=None):
        current = dict(getattr(namespace, self.dest) or {})
        for item in _csv_items(values):
            key, sep, value = item.partition("=")
            if not sep:
                raise argparse.ArgumentError(self, f"{item} must be formatted as key=value")
            current[key] = value
        setattr(namespace, self.dest, current)


def _tabwrite(rows: Sequence[Sequence[str]], padding: int = 3) -> str:
    widths = [max(len(row[i]) for row in rows) + padding for i in range(len(rows[0]))]
    return "".join(
        "".join(cell.ljust(width) for cell, width in zip(row, widths)) + "\n" for row in rows
    )


# Command handlers -------------------------------------------------------------


def _run_ls(args: argparse.Namespace) -> None:
    entries, failures = load_paths(args.paths)
    entries = filter_entries(entries, args.filter or {})
    if args.sort:
        entries = sort_entries(entries, args.sort)
    if args.reverse:
        entries.reverse()
    output_format = OutputFormat.parse(args.output)
    print_entries(sys.stdout, entries, output_format)
    if failures:
        raise _JoinedError("\n".join(f"{path}: {error}" for path, error in failures))


def _run_ines_extract(args: argparse.Namespace) -> None:
    extract_rom(args.rom, args.header or None, args.prg or None, args.chr or None)


def _run_ines_create(args: argparse.Namespace) -> None:
    mirror = parse_mirror(args.mirror) if args.mirror is not None else None
    create_rom(
        args.rom,
        args.prg,
        args.header or None,
        args.chr or None,
        args.mapper,
        mirror,
        args.battery,
    )


def _palette(args: argparse.Namespace) -> list[str]:
    return args.palette if args.palette is not None else list(DEFAULT_PALETTE)


def _run_chr_decode(args: argparse.Namespace) -> None:
    decode_file(args.input, args.output, _palette(args))


def _run_chr_encode(args: argparse.Namespace) -> None:
    encode_file(args.input, args.output, _palette(args))


def _run_genie_decode(args: argparse.Namespace) -> None:
    rows = [["CODE", "CPU ADDRESS", "REPLACE VALUE", "COMPARE VALUE"]]
    errors: list[str] = []
    for code in args.codes:
        try:
            result = decode(code)
        except (InvalidCodeLengthError, InvalidCharacterError) as exc:
            errors.append(str(exc))
            continue
        rows.append(
            [
                result.code,
                f"0x{result.address:04X}",
                f"0x{result.replace:02X}",
                result.compare_string(),
            ]
        )
    sys.stdout.write(_tabwrite(rows))
    if errors:
        raise _JoinedError("\n".join(errors))


def _run_genie_encode(args: argparse.Namespace) -> None:
    address = _parse_hex(args.address, 32)
    replace = _parse_hex(args.replace, 16)
    compare = _parse_hex(args.compare, 16) if args.compare is not None else 0
    sys.stdout.write(encode(address, replace, compare) + "\n")


# Parser -----------------------------------------------------------------------


def _add_palette(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-p", "--palette", action=_ListAction, default=None,
        help="Palette to use. Must contain 4 hex colors. (default 000,555,AAA,FFF)",
    )


def _group(sub, name: str, help_text: str) -> argparse._SubParsersAction:
    parser = sub.add_parser(name, help=help_text, description=help_text)
    parser.set_defaults(help_parser=parser)
    return parser.add_subparsers(metavar="COMMAND")


def build_parser(version: str = "") -> argparse.ArgumentParser:
    """The argument parser for ``nesutil``; a version flag is added when ``version`` is set."""
    parser = argparse.ArgumentParser(prog="nesutil", description="NES command-line utilities")
    if version:
        parser.add_argument(
            "-v", "--version", action="version", version=f"%(prog)s version {version}"
        )
    sub = parser.add_subparsers(metavar="COMMAND")

    ls = sub.add_parser(
        "ls", aliases=["list"], help="List ROM files and metadata",
        description="List ROM files and metadata",
    )
    ls.add_argument("paths", nargs="*", metavar="path")
    ls.add_argument("-o", "--output", default="table",
                    help="Output format. One of: (table, json, yaml, path)")
    ls.add_argument("-f", "--filter", action=_MappingAction, default=None,
                    help="Filter by a field")
    ls.add_argument("-s", "--sort", default="path", help="Sort by a field")
    ls.add_argument("-r", "--reverse", action="store_true", help="Reverse the output")
    ls.set_defaults(handler=_run_ls)

    ines = _group(sub, "ines", "INES ROM utilities")
    extract = ines.add_parser("extract", help="Extract PRG/CHR ROM data from an INES ROM")
    extract.add_argument("rom", metavar="ROM")
    extract.add_argument("-H", "--header", default="",
                         help="Header output file path (default generated)")
    extract.add_argument("-p", "--prg", default="",
                         help="PRG ROM output file path (default generated)")
    extract.add_argument("-c", "--chr", default="",
                         help="CHR ROM output file path (default generated)")
    extract.set_defaults(handler=_run_ines_extract)

    create = ines.add_parser("create", help="Create an INES ROM file")
    create.add_argument("rom", metavar="ROM")
    create.add_argument("-H", "--header", default="", help="Header file")
    create.add_argument("-p", "--prg", required=True, help="PRG ROM file path")
    create.add_argument("-c", "--chr", default="", help="CHR ROM file path")
    create.add_argument("-m", "--mapper", type=_uint8, default=None, help="INES mapper number")
    create.add_argument(
        "-n", "--mirror", default=None,
        help="Type of nametable mirroring (one of horizontal, vertical, fourscreen)",
    )
    create.add_argument(
        "-b", "--battery", nargs="?", const=True, type=_parse_bool, default=None,
        metavar="BOOL", help="Enable battery/extra RAM",
    )
    create.set_defaults(handler=_run_ines_create)

    chr_cmds = _group(sub, "chr", "CHR graphics data utilities")
    chr_encode = chr_cmds.add_parser("encode", help="Encode a PNG file into NES CHR data")
    chr_encode.add_argument("input", metavar="PNG")
    chr_encode.add_argument("output", nargs="?", default=None, metavar="CHR")
    _add_palette(chr_encode)
    chr_encode.set_defaults(handler=_run_chr_encode)

    chr_decode = chr_cmds.add_parser("decode", help="Decode NES CHR data into a PNG file")
    chr_decode.add_argument("input", metavar="INPUT")
    chr_decode.add_argument("output", nargs="?", default=None, metavar="OUTPUT")
    _add_palette(chr_decode)
    chr_decode.set_defaults(handler=_run_chr_decode)

    genie = _group(sub, "genie", "Game Genie code utilities")
    genie_decode = genie.add_parser("decode", help="Decode a Game Genie code")
    genie_decode.add_argument("codes", nargs="+", metavar="code")
    genie_decode.set_defaults(handler=_run_genie_decode)

    genie_encode = genie.add_parser("encode", help="Encode a Game Genie code")
    genie_encode.add_argument("address")
    genie_encode.add_argument("replace")
    genie_encode.add_argument("compare", nargs="?", default=None)
    genie_encode.set_defaults(handler=_run_genie_encode)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run ``nesutil``; return the process exit status."""
    logging.basicConfig(level=logging.INFO, stream=sys.stderr, format="%(levelname)s %(message)s")
    parser = build_parser(build_version(""))
    args = parser.parse_args(argv)

    handler = getattr(args, "handler", None)
    if handler is None:
        getattr(args, "help_parser", parser).print_help()
        return 0

    try:
        handler(args)
    except Exception as exc:  # reported to the user, one line at a time
        for line in str(exc).split("\n"):
            log.error(line)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())