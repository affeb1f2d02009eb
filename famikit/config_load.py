"""Loading the configuration from defaults, config files and command-line flags."""

from __future__ import annotations

import argparse
import logging
import os
import tomllib
from collections.abc import Mapping, MutableMapping
from dataclasses import fields
from typing import Any

from famikit.config import (
    Config,
    format_bytes,
    get_dir,
    get_palette_dir,
    new_default,
    parse_bytes,
    parse_duration,
)
from famikit.consts import AUDIO_BUFFER_BYTES, HEIGHT, WIDTH

log = logging.getLogger(__name__)

_TRUE = ("1", "t", "T", "true", "TRUE", "True")
_FALSE = ("0", "f", "F", "false", "FALSE", "False")


def flag_table() -> dict[str, str]:
    """Command-line flag names mapped to the config keys they override."""
    return {
        "debug": "debug.enabled",
        "trace": "debug.trace",
        "scale": "ui.scale",
        "fullscreen": "ui.fullscreen",
        "audio": "audio.enabled",
        "resume": "state.resume",
        "palette": "ui.palette",
        "pause-unfocused": "ui.pause_unfocused",
    }


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: {text!r}")


def _bool_flag(parser: argparse.ArgumentParser, *names: str, dest: str, help_text: str) -> None:
    parser.add_argument(
        *names,
        dest=dest,
        nargs="?",
        const=True,
        type=_parse_bool,
        default=argparse.SUPPRESS,
        metavar="BOOL",
        help=help_text,
    )


def add_flags(parser: argparse.ArgumentParser) -> None:
    """Add the emulator flags; only flags given on the command line appear in the result."""
    parser.add_argument(
        "-c", "--config", dest="config", default="",
        help="Config file (default is $HOME/.config/gones/config.toml)",
    )
    _bool_flag(parser, "--debug", dest="debug", help_text="Start with step debugging enabled")
    _bool_flag(parser, "--trace", dest="trace", help_text="Enable trace logging")
    parser.add_argument(
        "--scale", dest="scale", type=float, default=argparse.SUPPRESS,
        help="Default UI scale (default 3)",
    )
    _bool_flag(parser, "-f", "--fullscreen", dest="fullscreen", help_text="Start in fullscreen")
    _bool_flag(parser, "-a", "--audio", dest="audio",
               help_text="Enabled audio output (default true)")
    _bool_flag(parser, "--resume", dest="resume",
               help_text="Automatically resume where you left off (default true)")
    parser.add_argument(
        "--palette", dest="palette", default=argparse.SUPPRESS,
        help="Optional palette (.pal) file to use",
    )
    _bool_flag(
        parser, "--pause-unfocused", dest="pause-unfocused",
        help_text="Pauses when the window loses focus. Optional, but audio will be glitchy "
        "when the game is running in the background. (default true)",
    )


# Nested mapping helpers -------------------------------------------------------


def _get(data: Mapping[str, Any], path: str) -> Any:
    node: Any = data
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def _exists(data: Mapping[str, Any], path: str) -> bool:
    node: Any = data
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return False
        node = node[part]
    return True


def _set(data: MutableMapping[str, Any], path: str, value: Any) -> None:
    *parents, last = path.split(".")
    node = data
    for part in parents:
        child = node.get(part)
        if not isinstance(child, MutableMapping):
            child = {}
            node[part] = child
        node = child
    if isinstance(value, Mapping) and isinstance(node.get(last), MutableMapping):
        _merge(node[last], value)
    else:
        node[last] = value


def _delete(data: MutableMapping[str, Any], path: str) -> None:
    *parents, last = path.split(".")
    node: Any = data
    for part in parents:
        if not isinstance(node, MutableMapping) or part not in node:
            return
        node = node[part]
    if isinstance(node, MutableMapping):
        node.pop(last, None)


def _merge(dst: MutableMapping[str, Any], src: Mapping[str, Any]) -> None:
    for key, value in src.items():
        if isinstance(value, Mapping) and isinstance(dst.get(key), MutableMapping):
            _merge(dst[key], value)
        elif isinstance(value, Mapping):
            dst[key] = {}
            _merge(dst[key], value)
        else:
            dst[key] = value


def _as_int(value: Any) -> int:
    try:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (int, float)):
            return int(value)
        if isinstance(value, str):
            return int(value.strip(), 0)
    except ValueError:
        pass
    return 0


def _as_float(value: Any) -> float:
    try:
        if isinstance(value, (bool, int, float)):
            return float(value)
        if isinstance(value, str):
            return float(value.strip())
    except ValueError:
        pass
    return 0.0


def _as_seconds(value: Any) -> float:
    if isinstance(value, str):
        try:
            return parse_duration(value)
        except ValueError:
            return 0.0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value / 1_000_000_000
    return 0.0


def fix_config(data: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Migrate old keys and clamp out-of-range values in a raw config mapping, in place."""
    if _exists(data, "input.keys"):
        input_keys = _get(data, "input.keys")
        if isinstance(input_keys, Mapping):
            _set(data, "input", dict(input_keys))
        _delete(data, "input.keys")

    if _as_int(_get(data, "input.turbo_duty_cycle")) < 2:
        log.warning("Turbo duty cycle must be 2 or greater. Setting value to 2.")
        _set(data, "input.turbo_duty_cycle", 2)

    if _as_seconds(_get(data, "state.autosave_interval")) < 10:
        log.warning("Autosave interval must be 10s or greater. Setting value to 10s.")
        _set(data, "state.interval", "10s")

    volume = _as_float(_get(data, "audio.volume"))
    if volume < 0:
        log.warning("Minimum volume is 0. Setting to 0.")
        _set(data, "audio.volume", 0)
    elif volume > 1:
        log.warning("Maximum volume is 1. Setting to 1.")
        _set(data, "audio.volume", 1)

    default_overscan = new_default().ui.overscan
    limits = {"top": HEIGHT // 2, "right": WIDTH // 2, "bottom": HEIGHT // 2, "left": WIDTH // 2}
    for side, limit in limits.items():
        value = _as_int(_get(data, f"ui.trim.{side}"))
        if value < 0 or value >= limit:
            log.warning("Invalid %s trim. Setting to default.", side)
            _set(data, f"ui.trim.{side}", getattr(default_overscan, side))

    raw = _get(data, "audio.buffer_size")
    if raw is not None and str(raw) != "":
        if parse_bytes(str(raw)) < AUDIO_BUFFER_BYTES:
            log.warning(
                "The minimum allowed buffer size is %s. Setting to default.",
                format_bytes(AUDIO_BUFFER_BYTES),
            )
            _set(data, "audio.buffer_size", format_bytes(new_default().audio.buffer_size))

    return data


def _unmarshal(conf: Config, data: Mapping[str, Any]) -> None:
    loaded = Config.from_dict(data)
    for f in fields(conf):
        setattr(conf, f.name, getattr(loaded, f.name))


def _read_bytes(path: str) -> bytes | None:
    try:
        with open(path, "rb") as fh:
            return fh.read()
    except FileNotFoundError:
        return None


def _load_main_config(conf: Config, data: dict[str, Any], path: str) -> None:
    contents = _read_bytes(path)
    if contents is not None:
        _merge(data, tomllib.loads(contents.decode("utf-8")))
    fix_config(data)
    _unmarshal(conf, data)

    new_contents = conf.to_toml().encode("utf-8")
    if contents != new_contents:
        if contents is None:
            log.info("Creating main config file=%s", path)
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
        else:
            log.info("Updating main config file=%s", path)
        with open(path, "wb") as fh:
            fh.write(new_contents)
    log.info("Loaded main config file=%s", path)


def _load_game_overrides(conf: Config, data: dict[str, Any], path: str, name: str) -> None:
    contents = _read_bytes(path)
    if contents is None:
        log.info("Creating game config file=%s", path)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            fh.write("# Overrides for " + name)
        return

    _merge(data, tomllib.loads(contents.decode("utf-8")))
    _unmarshal(conf, data)
    fix_config(data)
    log.info("Loaded game config file=%s", path)


def _load_flags(conf: Config, data: dict[str, Any], flags: Mapping[str, Any]) -> None:
    lookup = flag_table()
    for flag, value in flags.items():
        key = lookup.get(flag)
        if key:
            _set(data, key, value)
    _unmarshal(conf, data)


def load_config(
    conf: Config,
    name: str,
    hash_value: str,
    config_file: str | None = "",
    flags: Mapping[str, Any] | None = None,
) -> Config:
    """Overlay the main config file, per-game overrides and changed flags onto ``conf``.

    When ``config_file`` is empty the main file and the per-game file under the
    config directory are used; otherwise only the given file is read.
    """
    data: dict[str, Any] = conf.to_dict()

    game_file = ""
    if not config_file:
        config_dir = get_dir()
        config_file = os.path.join(config_dir, "config.toml")
        game_file = os.path.join(config_dir, "games", hash_value + ".toml")

    _load_main_config(conf, data, config_file)
    if game_file:
        _load_game_overrides(conf, data, game_file, name)
    _load_flags(conf, data, flags or {})

    os.makedirs(get_palette_dir(), exist_ok=True)
    return conf