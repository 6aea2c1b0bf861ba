import io
import json

import pytest
from PIL import Image

from rpgdecrypt import decrypter

KEY_HEX = "d41d8cd98f00b204e9800998ecf8427e"


def make_png(size=(4, 4), color=(255, 0, 0)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, "PNG")
    return buf.getvalue()


def write_system_json(game_dir, key_hex=KEY_HEX, layout="www/data", **extra):
    data = {
        "gameTitle": "Test Game",
        "hasEncryptedImages": True,
        "hasEncryptedAudio": True,
    }
    if key_hex is not None:
        data["encryptionKey"] = key_hex
    data.update(extra)
    path = game_dir / layout / "System.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def key():
    return bytes.fromhex(KEY_HEX)


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def ogg_bytes():
    return b"OggS\x00\x02" + bytes(range(58))


@pytest.fixture
def make_game(tmp_path, key, png_bytes, ogg_bytes):
    """Build an MV style game directory; returns (root, {relpath: plaintext})."""

    def build(with_system_json=True, mz=False):
        root = tmp_path / "game"
        base = root if mz else root / "www"
        plain = {
            "img/pictures/actor1.png": png_bytes,
            "img/faces/actor1.png": make_png((8, 8), (0, 0, 255)),
            "audio/bgm/theme.ogg": ogg_bytes,
            "movies/intro.m4a": b"\x00\x00\x00\x20ftypM4A " + bytes(48),
        }
        ext = {".png": ".png_", ".ogg": ".ogg_", ".m4a": ".m4a_"} if mz else \
            {".png": ".rpgmvp", ".ogg": ".rpgmvo", ".m4a": ".rpgmvm"}
        files = {}
        for rel, data in plain.items():
            stem, dot, suffix = rel.rpartition(".")
            enc_rel = stem + ext["." + suffix]
            path = base / enc_rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(decrypter.obfuscate(data, key))
            files[path.relative_to(root).as_posix()] = data
        (base / "js").mkdir(parents=True, exist_ok=True)
        (base / "js" / "main.js").write_text("// not an asset\n")
        if with_system_json:
            write_system_json(root, layout="data" if mz else "www/data")
        return root, files

    return build
