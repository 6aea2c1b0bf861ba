import json

import pytest

from rpgdecrypt import cli, decrypter

from .conftest import KEY_HEX, write_system_json


def test_key_only(make_game, capsys):
    root, _ = make_game()
    assert cli.main(["decrypt", "-d", str(root), "--key", "-q"]) == 0
    assert capsys.readouterr().out.strip() == KEY_HEX
    assert not (root / "www" / "img" / "pictures" / "actor1.png").exists()


def test_scan_only_needs_no_key(tmp_path, capsys):
    (tmp_path / "readme.txt").write_text("hi")
    assert cli.main(["decrypt", "-d", str(tmp_path), "--scan"]) == 0
    out = capsys.readouterr().out
    assert "Scanned 1 file(s), 0 decryptable" in out


def test_decrypt_default_next_to(make_game, capsys):
    root, files = make_game()
    assert cli.main(["decrypt", "-d", str(root)]) == 0
    out = capsys.readouterr().out
    assert "Mode: next-to" in out
    assert f"✓ Decrypted {len(files)} of {len(files)} file(s)" in out
    assert (root / "www" / "audio" / "bgm" / "theme.ogg").exists()


def test_decrypt_quiet_output(make_game, tmp_path, capsys):
    root, files = make_game()
    out_dir = tmp_path / "out"
    assert cli.main(["decrypt", "-d", str(root), "--output", str(out_dir), "-q", "-j", "2"]) == 0
    out = capsys.readouterr().out
    assert "->" not in out
    assert "Decrypted 4 of 4" in out
    assert (out_dir / "www" / "img" / "faces" / "actor1.png").exists()


def test_failures_are_listed_but_exit_zero(make_game, capsys):
    root, _ = make_game()
    (root / "www" / "img" / "bad.rpgmvp").write_bytes(b"tiny")
    assert cli.main(["decrypt", "-d", str(root), "-q"]) == 0
    out = capsys.readouterr().out
    assert "✗ 1 file(s) failed:" in out
    assert "bad.rpgmvp" in out


def test_missing_key_is_fatal(tmp_path, capsys):
    (tmp_path / "a.rpgmvo").write_bytes(b"x" * 64)
    assert cli.main(["decrypt", "-d", str(tmp_path)]) == 1
    assert "No encryption key found" in capsys.readouterr().out


def test_missing_directory_is_fatal(tmp_path, capsys):
    assert cli.main(["decrypt", "-d", str(tmp_path / "nope"), "-q"]) == 1
    assert "Game directory not found" in capsys.readouterr().out


def test_with_key_overrides_lookup(tmp_path, key, png_bytes):
    (tmp_path / "a.rpgmvp").write_bytes(decrypter.obfuscate(png_bytes, key))
    assert cli.main(["decrypt", "-d", str(tmp_path), "--with-key", KEY_HEX, "-q"]) == 0
    assert (tmp_path / "a.png").read_bytes() == png_bytes


def test_no_update_system_json(make_game):
    root, _ = make_game()
    cli.main(["decrypt", "-d", str(root), "-q", "--no-update-system-json"])
    data = json.loads((root / "www" / "data" / "System.json").read_text(encoding="utf-8"))
    assert data["hasEncryptedImages"] is True


def test_placement_flags_are_exclusive(tmp_path):
    with pytest.raises(SystemExit):
        cli.parse_args(["decrypt", "-d", str(tmp_path), "--replace", "--output", "x"])


def test_jobs_must_be_positive(tmp_path):
    with pytest.raises(SystemExit):
        cli.parse_args(["decrypt", "-d", str(tmp_path), "-j", "0"])


def test_info(make_game, capsys):
    root, _ = make_game()
    assert cli.main(["info", "-d", str(root)]) == 0
    out = capsys.readouterr().out
    assert "Found Game: Test Game" in out
    assert "Has encrypted imgs: True" in out
    assert "Encrypted image files: 2" in out
    assert f"Encryption key: {KEY_HEX} (system.json)" in out


def test_info_without_key(tmp_path, capsys):
    write_system_json(tmp_path, key_hex=None)
    assert cli.main(["info", "-d", str(tmp_path)]) == 0
    assert "Encryption key: not found" in capsys.readouterr().out


def test_single_file_commands(tmp_path, key, png_bytes, capsys):
    plain = tmp_path / "a.png"
    plain.write_bytes(png_bytes)
    assert cli.main(["encrypt-file", str(plain), "--with-key", KEY_HEX]) == 0
    enc = tmp_path / "a.rpgmvp"
    assert decrypter.is_encrypted(enc.read_bytes())

    plain.unlink()
    assert cli.main(["decrypt-file", str(enc), "--with-key", KEY_HEX]) == 0
    assert plain.read_bytes() == png_bytes

    restored = tmp_path / "restored.png"
    assert cli.main(["restore-img", str(enc), "-o", str(restored)]) == 0
    assert restored.read_bytes() == png_bytes
    assert "Writing to" in capsys.readouterr().out


def test_decrypt_file_bad_key(tmp_path, capsys):
    enc = tmp_path / "a.rpgmvp"
    enc.write_bytes(b"x" * 64)
    assert cli.main(["decrypt-file", str(enc), "--with-key", "xyz"]) == 1
    assert "Invalid encryption key" in capsys.readouterr().out


def test_decrypt_file_not_encrypted(tmp_path, key, png_bytes, capsys):
    src = tmp_path / "a.rpgmvp"
    src.write_bytes(png_bytes)
    assert cli.main(["decrypt-file", str(src), "--with-key", KEY_HEX]) == 1
    assert "Fake-Header" in capsys.readouterr().out
