"""Emulator configuration: defaults, value formats and config directories."""

from __future__ import annotations

import os
import re
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from decimal import Decimal, InvalidOperation
from enum import IntEnum
from typing import Any

import tomli_w

from famikit.consts import HEIGHT, WIDTH

CONFIG_DIR_NAME = "gones"


class InvalidButtonError(ValueError):
    """Raised for a controller button name that is not recognised."""


class Button(IntEnum):
    """Controller buttons, in the order the hardware shifts them out."""

    A = 0
    B = 1
    SELECT = 2
    START = 3
    UP = 4
    DOWN = 5
    LEFT = 6
    RIGHT = 7

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, text: str) -> Button:
        """Look up a button by its lower-case name."""
        for button in cls:
            if str(button) == text:
                return button
        raise InvalidButtonError(f"invalid button: {text}")


# Durations ------------------------------------------------------------------

_NS_PER_UNIT = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_PART = r"(\d+\.?\d*|\.\d+)(ns|us|\u00b5s|\u03bcs|ms|s|m|h)"
_DURATION_RE = re.compile(rf"([+-]?)((?:{_DURATION_PART})+)")
_DURATION_PART_RE = re.compile(_DURATION_PART)


def parse_duration(text: str) -> float:
    """Parse a duration such as ``1m30s`` or ``500ms`` into seconds."""
    if text in ("0", "+0", "-0"):
        return 0.0
    match = _DURATION_RE.fullmatch(text)
    if not match:
        raise ValueError(f"invalid duration {text!r}")
    total = Decimal(0)
    for number, unit in _DURATION_PART_RE.findall(match.group(2)):
        total += Decimal(number) * _NS_PER_UNIT[unit]
    nanoseconds = int(total)
    if match.group(1) == "-":
        nanoseconds = -nanoseconds
    return nanoseconds / 1_000_000_000


def _fixed(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    digits = str(frac).zfill(len(str(unit)) - 1).rstrip("0")
    return f"{whole}.{digits}"


def format_duration(seconds: float) -> str:
    """Format seconds in the compact form ``1h2m3.5s``, ``1m0s`` or ``500ms``."""
    nanoseconds = round(seconds * 1_000_000_000)
    sign = "-" if nanoseconds < 0 else ""
    u = abs(nanoseconds)
    if u == 0:
        return "0s"
    if u < 1_000_000_000:
        if u < 1_000:
            text = f"{u}ns"
        elif u < 1_000_000:
            text = _fixed(u, 1_000) + "\u00b5s"
        else:
            text = _fixed(u, 1_000_000) + "ms"
        return sign + text
    hours, rem = divmod(u, _NS_PER_UNIT["h"])
    minutes, rem = divmod(rem, _NS_PER_UNIT["m"])
    secs = _fixed(rem, 1_000_000_000) + "s"
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}"
    if minutes:
        return f"{sign}{minutes}m{secs}"
    return sign + secs


# Byte sizes -----------------------------------------------------------------

_BINARY_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB")
_BYTE_MULTIPLIERS: dict[str, int] = {"": 1, "b": 1}
for _power, _prefix in enumerate("kmgtpe", start=1):
    _BYTE_MULTIPLIERS[_prefix] = 1024**_power
    _BYTE_MULTIPLIERS[_prefix + "ib"] = 1024**_power
    _BYTE_MULTIPLIERS[_prefix + "b"] = 1000**_power
_BYTES_RE = re.compile(r"\s*(\d*\.?\d+|\d+\.)\s*([A-Za-z]*)\s*")


def parse_bytes(text: str) -> int:
    """Parse a size such as ``40KiB``, ``1.5MiB``, ``2MB`` or ``512`` into bytes."""
    match = _BYTES_RE.fullmatch(text)
    if not match:
        raise ValueError(f"invalid byte size {text!r}")
    number, unit = match.groups()
    try:
        multiplier = _BYTE_MULTIPLIERS[unit.lower()]
    except KeyError:
        raise ValueError(f"invalid byte unit {unit!r} in {text!r}") from None
    try:
        return int(Decimal(number) * multiplier)
    except InvalidOperation:
        raise ValueError(f"invalid byte size {text!r}") from None


def format_bytes(value: int) -> str:
    """Format a byte count with binary units, dropping a ``.00`` fraction."""
    magnitude = abs(value)
    power = 0
    while power < len(_BINARY_UNITS) - 1 and magnitude >= 1024 ** (power + 1):
        power += 1
    text = f"{value / 1024**power:.2f}{_BINARY_UNITS[power]}"
    return text.replace(".00", "", 1)


# Keys -----------------------------------------------------------------------

_KEY_NAMES = (
    [chr(c) for c in range(ord("A"), ord("Z") + 1)]
    + [f"Digit{i}" for i in range(10)]
    + [f"F{i}" for i in range(1, 25)]
    + [f"Numpad{i}" for i in range(10)]
    + [
        "NumpadAdd", "NumpadDecimal", "NumpadDivide", "NumpadEnter", "NumpadEqual",
        "NumpadMultiply", "NumpadSubtract",
        "ArrowUp", "ArrowDown", "ArrowLeft", "ArrowRight",
        "Alt", "AltLeft", "AltRight", "Backquote", "Backslash", "Backspace",
        "BracketLeft", "BracketRight", "CapsLock", "Comma", "ContextMenu",
        "Control", "ControlLeft", "ControlRight", "Delete", "End", "Enter", "Equal",
        "Escape", "Home", "Insert", "IntlBackslash", "Meta", "MetaLeft", "MetaRight",
        "Minus", "NumLock", "PageDown", "PageUp", "Pause", "Period", "PrintScreen",
        "Quote", "ScrollLock", "Semicolon", "Shift", "ShiftLeft", "ShiftRight",
        "Slash", "Space", "Tab",
    ]
)
_KEY_LOOKUP = {name.lower(): name for name in _KEY_NAMES}


def _parse_key(text: str) -> str:
    """Canonicalise a key name; an empty name leaves the action unbound."""
    if text == "":
        return ""
    try:
        return _KEY_LOOKUP[text.lower()]
    except KeyError:
        raise ValueError(f"unexpected key name: {text}") from None


def _key(default: str) -> Any:
    return field(default=default, metadata={"kind": "key"})


def _duration(default: float) -> Any:
    return field(default=default, metadata={"kind": "duration"})


# Configuration sections -----------------------------------------------------


@dataclass
class Overscan:
    """Rows and columns trimmed from each edge of the picture."""

    top: int = 8
    right: int = 0
    bottom: int = 8
    left: int = 0

    def rect(self) -> tuple[int, int, int, int]:
        """The visible area as ``(x0, y0, x1, y1)``."""
        x0, x1 = sorted((self.left, WIDTH - self.right))
        y0, y1 = sorted((self.top, HEIGHT - self.bottom))
        return (x0, y0, x1, y1)


@dataclass
class UI:
    """Window and display settings."""

    fullscreen: bool = False
    scale: float = 3.0
    pause_unfocused: bool = True
    palette: str = ""
    remove_sprite_limit: bool = True
    overscan: Overscan = field(default_factory=Overscan)


@dataclass
class State:
    """Save-state settings."""

    resume: bool = True
    autosave_interval: float = _duration(60.0)
    undo_state_count: int = 5


@dataclass
class Keymap:
    """Keyboard bindings for one controller."""

    a: str = _key("")
    b: str = _key("")
    start: str = _key("")
    select: str = _key("")
    up: str = _key("")
    down: str = _key("")
    left: str = _key("")
    right: str = _key("")
    a_turbo: str = _key("")
    b_turbo: str = _key("")

    def get_map(self) -> dict[Button, str]:
        """Key bound to each controller button."""
        return {
            Button.A: self.a,
            Button.B: self.b,
            Button.START: self.start,
            Button.SELECT: self.select,
            Button.UP: self.up,
            Button.DOWN: self.down,
            Button.LEFT: self.left,
            Button.RIGHT: self.right,
        }

    def get_turbo_map(self) -> dict[Button, str]:
        """Key bound to each turbo button."""
        return {Button.A: self.a_turbo, Button.B: self.b_turbo}


def _player1_keymap() -> Keymap:
    return Keymap(
        a="M", b="N", start="Enter", select="ShiftRight",
        up="W", down="S", left="A", right="D",
        a_turbo="K", b_turbo="J",
    )


def _player2_keymap() -> Keymap:
    return Keymap(
        a="Numpad3", b="Numpad2", start="NumpadEnter", select="NumpadAdd",
        up="Home", down="End", left="Delete", right="PageDown",
        a_turbo="Numpad6", b_turbo="Numpad5",
    )


@dataclass
class Input:
    """Hotkeys and controller bindings."""

    reset: str = _key("R")
    reset_hold: float = _duration(0.5)
    state1_save: str = _key("F1")
    state1_load: str = _key("F5")
    state_undo_modifier: str = _key("ShiftLeft")
    fast_forward: str = _key("F")
    fast_forward_rate: int = 3
    fullscreen: str = _key("F11")
    screenshot: str = _key("Backslash")
    turbo_duty_cycle: int = 4
    player1: Keymap = field(default_factory=_player1_keymap)
    player2: Keymap = field(default_factory=_player2_keymap)

    def reset_hold_frames(self) -> int:
        """Frames the reset key must be held, at least one."""
        frames = int(self.reset_hold * 60)
        return frames if frames != 0 else 1


@dataclass
class AudioChannels:
    """Per-channel audio switches."""

    triangle: bool = True
    square_1: bool = True
    square_2: bool = True
    noise: bool = True
    pcm: bool = True


@dataclass
class Audio:
    """Audio output settings."""

    enabled: bool = True
    volume: float = 1.0
    channels: AudioChannels = field(default_factory=AudioChannels)
    buffer_size: int = field(default=40 * 1024, metadata={"kind": "bytes"})


@dataclass
class Debug:
    """Debugging switches."""

    enabled: bool = False
    trace: bool = False


def _to_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw != 0
    if isinstance(raw, str):
        text = raw.strip()
        if text in ("1", "t", "T", "true", "TRUE", "True"):
            return True
        if text in ("0", "f", "F", "false", "FALSE", "False"):
            return False
    raise ValueError(f"invalid boolean value: {raw!r}")


def _convert(kind: str | None, current: Any, raw: Any, name: str) -> Any:
    try:
        if kind == "duration":
            if isinstance(raw, str):
                return parse_duration(raw)
            if isinstance(raw, (int, float)) and not isinstance(raw, bool):
                # Bare numbers are nanoseconds.
                return raw / 1_000_000_000
        elif kind == "bytes":
            if isinstance(raw, str):
                return parse_bytes(raw)
            if isinstance(raw, int) and not isinstance(raw, bool):
                return raw
        elif kind == "key":
            if isinstance(raw, str):
                return _parse_key(raw)
        elif isinstance(current, bool):
            return _to_bool(raw)
        elif isinstance(current, int):
            if isinstance(raw, float) and raw.is_integer():
                return int(raw)
            if isinstance(raw, (int, str)):
                return int(raw)
        elif isinstance(current, float):
            if isinstance(raw, (int, float, str)):
                return float(raw)
        elif isinstance(current, str):
            return str(raw)
    except ValueError as exc:
        raise ValueError(f"{name}: {exc}") from None
    raise ValueError(f"{name}: unsupported value {raw!r}")


def _apply(obj: Any, data: Any, prefix: str) -> None:
    if not isinstance(data, Mapping):
        raise ValueError(f"{prefix or 'config'}: expected a table, got {data!r}")
    for f in fields(obj):
        if f.name not in data:
            continue
        name = f"{prefix}.{f.name}" if prefix else f.name
        current = getattr(obj, f.name)
        raw = data[f.name]
        if is_dataclass(current):
            _apply(current, raw, name)
        else:
            setattr(obj, f.name, _convert(f.metadata.get("kind"), current, raw, name))


def _to_plain(obj: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        kind = f.metadata.get("kind")
        if is_dataclass(value):
            out[f.name] = _to_plain(value)
        elif kind == "duration":
            out[f.name] = format_duration(value)
        elif kind == "bytes":
            out[f.name] = format_bytes(value)
        else:
            out[f.name] = value
    return out


@dataclass
class Config:
    """The full emulator configuration."""

    ui: UI = field(default_factory=UI)
    state: State = field(default_factory=State)
    input: Input = field(default_factory=Input)
    audio: Audio = field(default_factory=Audio)
    debug: Debug = field(default_factory=Debug)

    def to_dict(self) -> dict[str, Any]:
        """Plain nested mapping using the config file's keys and text formats."""
        data = _to_plain(self)
        if not (self.debug.enabled or self.debug.trace):
            del data["debug"]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Config:
        """Defaults overlaid with ``data``; unknown keys are ignored."""
        conf = cls()
        _apply(conf, data, "")
        return conf

    def to_toml(self) -> str:
        """The configuration as a TOML document."""
        return tomli_w.dumps(self.to_dict())


def new_default() -> Config:
    """The default configuration."""
    return Config()


# Directories ----------------------------------------------------------------


def _user_config_dir() -> str:
    if sys.platform == "win32":
        appdata = os.environ.get("AppData", "")
        if not appdata:
            raise OSError("%AppData% is not defined")
        return appdata
    if sys.platform == "darwin":
        home = os.environ.get("HOME", "")
        if not home:
            raise OSError("$HOME is not defined")
        return os.path.join(home, "Library", "Application Support")
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg:
        if not os.path.isabs(xdg):
            raise OSError("path in $XDG_CONFIG_HOME is relative")
        return xdg
    home = os.environ.get("HOME", "")
    if not home:
        raise OSError("neither $XDG_CONFIG_HOME nor $HOME are defined")
    return os.path.join(home, ".config")


def get_dir() -> str:
    """The configuration directory."""
    if sys.platform == "darwin":
        xdg = os.environ.get("XDG_CONFIG_HOME", "")
        if xdg:
            return os.path.join(xdg, CONFIG_DIR_NAME)
    return os.path.join(_user_config_dir(), CONFIG_DIR_NAME)


def get_states_dir() -> str:
    """Directory holding save states."""
    return os.path.join(get_dir(), "states")


def get_sram_dir() -> str:
    """Directory holding battery-backed save RAM files."""
    return os.path.join(get_dir(), "sav")


def get_palette_dir() -> str:
    """Directory holding palette files."""
    return os.path.join(get_dir(), "palettes")


def get_screenshot_dir() -> str:
    """Directory holding screenshots."""
    return os.path.join(get_dir(), "screenshots")