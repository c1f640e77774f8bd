"""
Tests for the chunkseal command line.
"""

from __future__ import annotations

import os

import pytest

from chunkseal.cli import main
from chunkseal.config import ENV_CHUNK_SIZE, ENV_READ_SIZE

C = 1024


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """No user config or environment overrides leak into CLI tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv(ENV_CHUNK_SIZE, raising=False)
    monkeypatch.delenv(ENV_READ_SIZE, raising=False)
    return home


@pytest.fixture
def payload(tmp_path):
    data = os.urandom(5 * C + 10)
    path = tmp_path / "payload.bin"
    path.write_bytes(data)
    return path, data


def run(*argv):
    main(["--chunk-size", str(C), *argv])


def encode(capsys, path) -> str:
    run("encode", str(path))
    out = capsys.readouterr().out
    return next(line.split()[-1] for line in out.splitlines() if "root:" in line)


class TestEncodeCommand:

    def test_writes_default_outboard(self, capsys, payload):
        path, _ = payload
        root_hex = encode(capsys, path)
        assert len(root_hex) == 64
        outboard = path.with_name(path.name + ".obao")
        assert outboard.stat().st_size == 8 + 5 * 64

    def test_explicit_output(self, capsys, payload, tmp_path):
        path, _ = payload
        run("encode", str(path), "-o", str(tmp_path / "custom.obao"))
        assert (tmp_path / "custom.obao").is_file()

    def test_missing_file(self, capsys, tmp_path):
        with pytest.raises(SystemExit) as exc:
            run("encode", str(tmp_path / "missing"))
        assert exc.value.code == 1
        assert "Error" in capsys.readouterr().err

    def test_hash(self, capsys, payload):
        import blake3

        path, data = payload
        main(["hash", str(path)])
        assert capsys.readouterr().out.startswith(blake3.blake3(data).hexdigest())


class TestVerifyCommand:

    def test_ok_and_fail(self, capsys, payload, tmp_path):
        path, data = payload
        root_hex = encode(capsys, path)
        outboard = str(path) + ".obao"

        chunk = tmp_path / "chunk2"
        chunk.write_bytes(data[2 * C:3 * C])
        run("verify", str(chunk), "--offset", str(2 * C), "--outboard", outboard, "--root", root_hex)
        assert capsys.readouterr().out.startswith("OK: chunk 2")

        chunk.write_bytes(b"\x00" + data[2 * C + 1:3 * C])
        with pytest.raises(SystemExit) as exc:
            run("verify", str(chunk), "--offset", str(2 * C), "--outboard", outboard, "--root", root_hex)
        assert exc.value.code == 1
        assert "FAIL: verification_mismatch" in capsys.readouterr().err

    def test_misaligned(self, capsys, payload, tmp_path):
        path, data = payload
        root_hex = encode(capsys, path)
        chunk = tmp_path / "chunk"
        chunk.write_bytes(data[:C])
        with pytest.raises(SystemExit):
            run("verify", str(chunk), "--offset", "7", "--outboard", str(path) + ".obao", "--root", root_hex)
        assert "misaligned_offset" in capsys.readouterr().err

    def test_bad_root(self, capsys, payload):
        path, _ = payload
        encode(capsys, path)
        with pytest.raises(SystemExit):
            run("verify", str(path), "--offset", "0", "--outboard", str(path) + ".obao", "--root", "xyz")
        assert "64 hex chars" in capsys.readouterr().err


class TestSliceCommands:

    def test_slice_then_decode(self, capsys, payload, tmp_path):
        path, data = payload
        root_hex = encode(capsys, path)
        sl = tmp_path / "window.slice"
        out = tmp_path / "window.bin"

        run("slice", str(path), "--outboard", str(path) + ".obao",
            "--offset", "1500", "--length", "2000", "-o", str(sl))
        run("decode-slice", str(sl), "--root", root_hex,
            "--offset", "1500", "--length", "2000", "-o", str(out))
        assert out.read_bytes() == data[1500:3500]
        assert "OK: 2000 verified bytes" in capsys.readouterr().out

    def test_decode_tampered(self, capsys, payload, tmp_path):
        path, _ = payload
        root_hex = encode(capsys, path)
        sl = tmp_path / "window.slice"
        run("slice", str(path), "--outboard", str(path) + ".obao",
            "--offset", "0", "--length", "10", "-o", str(sl))
        raw = bytearray(sl.read_bytes())
        raw[-1] ^= 0xFF
        sl.write_bytes(bytes(raw))
        with pytest.raises(SystemExit) as exc:
            run("decode-slice", str(sl), "--root", root_hex, "--offset", "0", "--length", "10")
        assert exc.value.code == 1
        assert "FAIL" in capsys.readouterr().err


class TestCryptoCommands:

    def test_roundtrip(self, capsys, tmp_path):
        pytest.importorskip("Cryptodome")
        key = tmp_path / "key.hex"
        key.write_text(os.urandom(32).hex() + "\n")
        src = tmp_path / "note.txt"
        src.write_bytes(b"chunk me")

        main(["encrypt", str(src), "--key-file", str(key)])
        enc = tmp_path / "note.txt.enc"
        assert enc.is_file()

        src.unlink()
        main(["decrypt", str(enc), "--key-file", str(key)])
        assert src.read_bytes() == b"chunk me"

    def test_bad_key_file(self, capsys, tmp_path):
        key = tmp_path / "key.bin"
        key.write_bytes(b"short")
        src = tmp_path / "note.txt"
        src.write_bytes(b"x")
        with pytest.raises(SystemExit):
            main(["encrypt", str(src), "--key-file", str(key)])
        assert "Key file" in capsys.readouterr().err


class TestMain:

    def test_no_command_prints_usage(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 0
        assert "Usage:" in capsys.readouterr().out

    def test_invalid_chunk_size(self, capsys, payload):
        path, _ = payload
        with pytest.raises(SystemExit) as exc:
            main(["--chunk-size", "1000", "encode", str(path)])
        assert exc.value.code == 1
        assert "Invalid configuration" in capsys.readouterr().err

    def test_config_file(self, capsys, payload, tmp_path):
        path, _ = payload
        cfg = tmp_path / "c.toml"
        cfg.write_text("[tree]\nchunk_size = 2048\n")
        main(["--config", str(cfg), "encode", str(path)])
        assert "chunk size: 2048" in capsys.readouterr().out
