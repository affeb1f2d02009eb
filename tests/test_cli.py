import json
import logging

import pytest

from famikit.cli import build_parser, build_version, main


def _rom(control0=0):
    header = b"NES\x1a" + bytes([1, 1, control0, 0]) + bytes(8)
    return header + bytes(0x4000) + bytes(0x2000)


@pytest.mark.parametrize(
    "version, commit, modified, expected",
    [
        ("1.0", "", False, "1.0"),
        ("", "", True, ""),
        ("", "abcdef123456", False, "abcdef12"),
        ("", "abc", True, "*abc"),
        ("1.0", "abcdef123456", True, "1.0 (*abcdef12)"),
    ],
)
def test_build_version(version, commit, modified, expected):
    assert build_version(version, commit, modified) == expected


def test_version_flag(capsys):
    parser = build_parser("1.2.3")
    with pytest.raises(SystemExit) as exc_info:
        parser.parse_args(["--version"])
    assert exc_info.value.code == 0
    assert "nesutil version 1.2.3" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "nesutil" in capsys.readouterr().out


def test_genie_decode(capsys):
    assert main(["genie", "decode", "SXIOPO", "yeuzugaa"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split()[0] == "CODE"
    assert lines[1].split() == ["SXIOPO", "0x91D9", "0xAD", "<none>"]
    assert lines[2].split() == ["YEUZUGAA", "0xACB3", "0x07", "0x00"]


def test_genie_decode_invalid(capsys, caplog):
    with caplog.at_level(logging.ERROR):
        assert main(["genie", "decode", "YEUZUGA", "SXIOPO"]) == 1
    assert "SXIOPO" in capsys.readouterr().out
    assert caplog.records


@pytest.mark.parametrize(
    "args, expected",
    [
        (["91D9", "AD", "-1"], "SXIOPO"),
        (["ACB3", "07", "00"], "YEUZUGAA"),
        (["2CB3", "07", "00"], "YEUZUGAA"),
    ],
)
def test_genie_encode(capsys, args, expected):
    assert main(["genie", "encode", *args]) == 0
    assert capsys.readouterr().out == expected + "\n"


def test_genie_encode_bad_hex():
    assert main(["genie", "encode", "zz", "AD"]) == 1


def test_ls_json(tmp_path, capsys):
    (tmp_path / "game.nes").write_bytes(_rom(control0=0x13))
    assert main(["ls", "-o", "json", str(tmp_path)]) == 0
    data = json.loads(capsys.readouterr().out)
    assert len(data) == 1
    assert data[0]["mapper"] == 1
    assert data[0]["mirror"] == "Vertical"
    assert data[0]["battery"] is True


def test_ls_filter_and_reverse(tmp_path, capsys):
    (tmp_path / "a.nes").write_bytes(_rom())
    (tmp_path / "b.nes").write_bytes(_rom(control0=0x10))
    (tmp_path / "c.nes").write_bytes(_rom(control0=0x01))
    assert main(["ls", "-o", "path", "-r", "-f", "mapper=0", str(tmp_path)]) == 0
    paths = capsys.readouterr().out.splitlines()
    assert [p.rsplit("/", 1)[-1].rsplit("\\", 1)[-1] for p in paths] == ["c.nes", "a.nes"]


def test_ls_unknown_sort(tmp_path):
    (tmp_path / "a.nes").write_bytes(_rom())
    (tmp_path / "b.nes").write_bytes(_rom(control0=0x10))
    assert main(["ls", "-s", "size", str(tmp_path)]) == 1


def test_ls_reports_broken_rom(tmp_path, capsys):
    (tmp_path / "good.nes").write_bytes(_rom())
    (tmp_path / "bad.nes").write_bytes(b"junk")
    assert main(["ls", "-o", "path", str(tmp_path)]) == 1
    out = capsys.readouterr().out
    assert "good.nes" in out
    assert "bad.nes" not in out


def test_ines_create_and_extract(tmp_path, capsys):
    prg = bytes([0xEA]) * 0x4000
    prg_path = tmp_path / "prg.bin"
    prg_path.write_bytes(prg)
    rom = tmp_path / "made.nes"
    assert main(
        ["ines", "create", str(rom), "-p", str(prg_path), "-m", "1", "-n", "vertical", "-b"]
    ) == 0

    assert main(["ls", "-o", "json", str(rom)]) == 0
    data = json.loads(capsys.readouterr().out)
    assert (data[0]["mapper"], data[0]["mirror"], data[0]["battery"]) == (1, "Vertical", True)

    out_prg = tmp_path / "out_prg"
    out_header = tmp_path / "out_header"
    assert main(
        ["ines", "extract", str(rom), "-p", str(out_prg), "-H", str(out_header),
         "-c", str(tmp_path / "out_chr")]
    ) == 0
    assert out_prg.read_bytes() == prg
    assert out_header.read_bytes()[:4] == b"NES\x1a"


def test_ines_create_unknown_mirror(tmp_path):
    prg_path = tmp_path / "prg.bin"
    prg_path.write_bytes(bytes(0x4000))
    assert main(["ines", "create", str(tmp_path / "x.nes"), "-p", str(prg_path),
                 "-n", "diagonal"]) == 1


def test_chr_round_trip(tmp_path):
    chr_data = bytes((i * 37) & 0xFF for i in range(256))
    chr_path = tmp_path / "tiles.chr"
    chr_path.write_bytes(chr_data)
    png_path = tmp_path / "tiles.png"
    out_path = tmp_path / "tiles.out"

    assert main(["chr", "decode", str(chr_path), str(png_path)]) == 0
    assert main(["chr", "encode", str(png_path), str(out_path)]) == 0
    assert out_path.read_bytes() == chr_data


def test_chr_bad_palette(tmp_path):
    chr_path = tmp_path / "tiles.chr"
    chr_path.write_bytes(bytes(256))
    assert main(["chr", "decode", str(chr_path), str(tmp_path / "t.png"),
                 "-p", "000,FFF"]) == 1
    assert not (tmp_path / "t.png").exists()