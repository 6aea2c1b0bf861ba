"""Finding the project's encryption key.

The key is normally declared in System.json. When it is missing, it can be
recovered from any encrypted PNG: the plaintext header of a PNG is fixed, so
``encrypted_header XOR PNG_HEADER`` yields the key.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import decrypter
from .errors import KeyIOError, KeyNotFoundError, MalformedKeyError, RootNotFoundError, SystemJsonError
from .filetypes import is_reference_candidate
from .system_json import SystemJson

log = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^[0-9A-Fa-f]*$")

SOURCE_SYSTEM_JSON = "system.json"
SOURCE_DERIVED = "derived"
SOURCE_USER = "user"


@dataclass(frozen=True)
class ProjectKey:
    data: bytes
    source: str = SOURCE_USER
    origin: Optional[Path] = None

    def __post_init__(self):
        if len(self.data) != decrypter.KEY_LEN:
            raise MalformedKeyError(self.data.hex(), f"expected {decrypter.KEY_LEN} bytes, got {len(self.data)}")

    @property
    def hex(self):
        return self.data.hex()

    def __str__(self):
        return self.hex


def parse_key(text, source=SOURCE_USER, origin=None):
    """Decode a hex key string, raising MalformedKeyError when it is unusable."""
    if not isinstance(text, str):
        raise MalformedKeyError(repr(text), "not a string")
    cleaned = "".join(text.split())
    if len(cleaned) % 2:
        raise MalformedKeyError(text, "odd number of hex digits")
    if not _HEX_RE.match(cleaned):
        raise MalformedKeyError(text, "not a hex string")
    raw = bytes.fromhex(cleaned)
    if len(raw) != decrypter.KEY_LEN:
        raise MalformedKeyError(text, f"expected {decrypter.KEY_LEN} bytes, got {len(raw)}")
    return ProjectKey(raw, source, origin)


def derive_key(buffer, origin=None):
    """Recover the key from the first 32 bytes of an encrypted PNG.

    Returns None if ``buffer`` is not an encrypted asset.
    """
    if not decrypter.is_encrypted(buffer):
        return None
    body_header = buffer[decrypter.HEADER_LEN:decrypter.HEADER_LEN * 2]
    key = bytes(a ^ b for a, b in zip(body_header, decrypter.get_normal_png_header()))
    return ProjectKey(key, SOURCE_DERIVED, origin)


def derive_key_from_file(path):
    path = Path(path)
    try:
        with open(path, "rb") as f:
            head = f.read(decrypter.HEADER_LEN * 2)
    except OSError as e:
        raise KeyIOError(path, e) from e
    return derive_key(head, origin=path)


def find_reference_files(root):
    """Yield encrypted image paths under ``root`` in a stable order."""
    for dirpath, dirs, files in os.walk(root):
        dirs.sort()
        for name in sorted(files):
            if is_reference_candidate(name):
                yield Path(dirpath) / name


def key_from_system_json(root):
    """Return the declared key, or None when System.json has none."""
    try:
        system = SystemJson.find(root)
    except OSError as e:
        raise KeyIOError(root, e) from e
    except SystemJsonError as e:
        log.warning("Ignoring unreadable System.json: %s", e)
        return None
    if system is None or system.encryption_key is None:
        return None
    return parse_key(system.encryption_key, SOURCE_SYSTEM_JSON, system.path)


def resolve_key(root):
    """Find the key for the game at ``root``.

    System.json wins; otherwise the key is derived from the first encrypted
    image whose fake header checks out.
    """
    root = Path(root)
    if not root.is_dir():
        raise RootNotFoundError(root)
    key = key_from_system_json(root)
    if key is not None:
        log.debug("Using key from %s", key.origin)
        return key

    for path in find_reference_files(root):
        key = derive_key_from_file(path)
        if key is not None:
            log.debug("Derived key from %s", path)
            return key
        log.debug("Skipping %s: no fake header", path)

    raise KeyNotFoundError(root)


def as_project_key(value):
    """Accept a ProjectKey, raw key bytes or a hex string."""
    if isinstance(value, ProjectKey):
        return value
    if isinstance(value, str):
        return parse_key(value)
    return ProjectKey(bytes(value))
