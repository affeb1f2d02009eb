import os
import sys
import tomllib

import pytest

from famikit.config import (
    Button,
    Config,
    Input,
    InvalidButtonError,
    Keymap,
    format_bytes,
    format_duration,
    get_dir,
    get_palette_dir,
    get_screenshot_dir,
    get_sram_dir,
    get_states_dir,
    new_default,
    parse_bytes,
    parse_duration,
)
from famikit.consts import HEIGHT, WIDTH


def test_button_parse_and_str():
    assert Button.parse("select") is Button.SELECT
    assert Button.parse("right") is Button.RIGHT
    assert str(Button.START) == "start"
    assert [str(b) for b in Button] == [
        "a", "b", "select", "start", "up", "down", "left", "right",
    ]


def test_button_parse_invalid():
    with pytest.raises(InvalidButtonError):
        Button.parse("turbo")


def test_duration_default_format():
    assert format_duration(60) == "1m0s"
    assert format_duration(0) == "0s"


@pytest.mark.parametrize("seconds", [0.5, 60, 10, 3725.25, 0.000002, 0.0000005])
def test_duration_round_trip(seconds):
    assert parse_duration(format_duration(seconds)) == pytest.approx(seconds)


@pytest.mark.parametrize("text", ["", "abc", "10", "5x", "1.2.3s"])
def test_duration_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_duration_negative_and_mixed():
    assert parse_duration("-1m30s") == -parse_duration("90s")
    assert parse_duration("1h") == parse_duration("60m")


def test_bytes_format_default():
    assert format_bytes(new_default().audio.buffer_size) == "40KiB"


@pytest.mark.parametrize("value", [0, 512, 1024, 40 * 1024, 3 * 1024 * 1024])
def test_bytes_round_trip(value):
    assert parse_bytes(format_bytes(value)) == value


def test_bytes_units():
    assert parse_bytes("2KiB") == parse_bytes("2048")
    assert parse_bytes("1 MiB") == 1024 * 1024
    with pytest.raises(ValueError):
        parse_bytes("12 parsecs")
    with pytest.raises(ValueError):
        parse_bytes("lots")


def test_default_values():
    conf = new_default()
    assert conf.ui.scale == 3
    assert conf.ui.pause_unfocused is True
    assert conf.state.undo_state_count == 5
    assert conf.input.fast_forward_rate == 3
    assert conf.input.turbo_duty_cycle == 4
    assert conf.audio.volume == 1


def test_overscan_rect():
    conf = new_default()
    top = conf.ui.overscan.top
    bottom = conf.ui.overscan.bottom
    assert conf.ui.overscan.rect() == (0, top, WIDTH, HEIGHT - bottom)


def test_reset_hold_frames():
    assert Input(reset_hold=0).reset_hold_frames() == 1
    assert Input(reset_hold=1.0).reset_hold_frames() == 60


def test_keymap_maps():
    keymap = new_default().input.player1
    regular = keymap.get_map()
    assert set(regular) == set(Button)
    assert regular[Button.UP] == keymap.up
    assert keymap.get_turbo_map() == {Button.A: keymap.a_turbo, Button.B: keymap.b_turbo}


def test_to_dict_round_trip():
    conf = new_default()
    assert Config.from_dict(conf.to_dict()) == conf


def test_toml_round_trip():
    conf = new_default()
    conf.ui.palette = "custom.pal"
    conf.input.player2.a = ""
    parsed = tomllib.loads(conf.to_toml())
    assert Config.from_dict(parsed) == conf


def test_debug_omitted_unless_set():
    conf = new_default()
    assert "debug" not in conf.to_dict()
    conf.debug.trace = True
    assert conf.to_dict()["debug"] == {"enabled": False, "trace": True}


def test_from_dict_weak_typing():
    conf = Config.from_dict(
        {
            "ui": {"scale": "2", "fullscreen": "true"},
            "state": {"autosave_interval": "30s"},
            "audio": {"buffer_size": "64KiB"},
            "unknown": {"x": 1},
        }
    )
    assert conf.ui.scale == 2.0
    assert conf.ui.fullscreen is True
    assert conf.state.autosave_interval == 30.0
    assert conf.audio.buffer_size == 64 * 1024
    assert conf.ui.pause_unfocused is True


def test_from_dict_numeric_duration_is_nanoseconds():
    conf = Config.from_dict({"state": {"autosave_interval": 10_000_000_000}})
    assert conf.state.autosave_interval == 10.0


def test_from_dict_keys():
    conf = Config.from_dict({"input": {"reset": "f2", "player1": {"a": ""}}})
    assert conf.input.reset == "F2"
    assert conf.input.player1.a == ""
    with pytest.raises(ValueError):
        Config.from_dict({"input": {"reset": "NotAKey"}})


def test_from_dict_bad_values():
    with pytest.raises(ValueError):
        Config.from_dict({"ui": {"fullscreen": "maybe"}})
    with pytest.raises(ValueError):
        Config.from_dict({"ui": "not a table"})


def test_keymap_defaults_differ_between_players():
    conf = new_default()
    assert conf.input.player1 != conf.input.player2
    assert Keymap().get_map()[Button.A] == ""


def test_dirs_on_linux(monkeypatch, tmp_path):
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    base = os.path.join(str(tmp_path), "gones")
    assert get_dir() == base
    assert get_states_dir() == os.path.join(base, "states")
    assert get_sram_dir() == os.path.join(base, "sav")
    assert get_palette_dir() == os.path.join(base, "palettes")
    assert get_screenshot_dir() == os.path.join(base, "screenshots")


def test_dirs_on_linux_home_fallback(monkeypatch, tmp_path):
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert get_dir() == os.path.join(str(tmp_path), ".config", "gones")


def test_dirs_on_darwin_prefer_xdg(monkeypatch, tmp_path):
    monkeypatch.setattr(sys, "platform", "darwin")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert get_dir() == os.path.join(str(tmp_path), "gones")


def test_dirs_unresolvable(monkeypatch):
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.delenv("HOME", raising=False)
    with pytest.raises(OSError):
        get_dir()