"""Reading and updating an RPG Maker project's System.json."""

import json
import logging
import os
from pathlib import Path

from chardet.universaldetector import UniversalDetector

from .errors import SystemJsonError
from .output import atomic_write

log = logging.getLogger(__name__)

SYSTEM_JSON_PATHS = ("www/data/System.json", "data/System.json")

ENCRYPTION_KEY = "encryptionKey"
HAS_ENCRYPTED_IMAGES = "hasEncryptedImages"
HAS_ENCRYPTED_AUDIO = "hasEncryptedAudio"
GAME_TITLE = "gameTitle"


def find_system_json(directory):
    """Locate System.json, checking the MV and MZ layouts before walking."""
    directory = Path(directory)
    for rel in SYSTEM_JSON_PATHS:
        candidate = directory / rel
        if candidate.is_file():
            log.debug("Found System.json at: %s", candidate)
            return candidate

    log.debug("Searching for System.json in: %s", directory)
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        if "System.json" in files:
            full_path = Path(root) / "System.json"
            log.debug("Found System.json at: %s", full_path)
            return full_path

    log.debug("System.json not found.")
    return None


def detect_encoding(raw):
    if raw.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"
    try:
        raw.decode("utf-8")
        return "utf-8"
    except UnicodeDecodeError:
        pass

    detector = UniversalDetector()
    for line in raw.splitlines(True):
        detector.feed(line)
        if detector.done:
            break
    detector.close()
    encoding = detector.result.get("encoding")
    log.debug("Detected System.json encoding: %s (confidence %.2f)",
              encoding, detector.result.get("confidence") or 0.0)
    return encoding or "utf-8"


class SystemJson:
    def __init__(self, path, data, encoding="utf-8"):
        self.path = Path(path)
        self.data = data
        self.encoding = encoding

    @classmethod
    def load(cls, path):
        """Read and parse ``path``. OSError propagates to the caller."""
        path = Path(path)
        with open(path, "rb") as f:
            raw = f.read()
        encoding = detect_encoding(raw)
        try:
            data = json.loads(raw.decode(encoding))
        except (UnicodeDecodeError, LookupError, ValueError) as e:
            raise SystemJsonError(f"Failed parsing JSON in {path}: {e}") from e
        if not isinstance(data, dict):
            raise SystemJsonError(f"Failed parsing JSON in {path}: expected an object")
        return cls(path, data, encoding)

    @classmethod
    def find(cls, directory):
        path = find_system_json(directory)
        if path is None:
            return None
        return cls.load(path)

    @property
    def encryption_key(self):
        """The raw ``encryptionKey`` value, or None when absent or empty."""
        return self.data.get(ENCRYPTION_KEY) or None

    @property
    def game_title(self):
        return self.data.get(GAME_TITLE)

    @property
    def has_encrypted_images(self):
        return self.data.get(HAS_ENCRYPTED_IMAGES) is True

    @property
    def has_encrypted_audio(self):
        return self.data.get(HAS_ENCRYPTED_AUDIO) is True

    def set_encrypted(self, images=None, audio=None):
        if images is not None:
            self.data[HAS_ENCRYPTED_IMAGES] = bool(images)
        if audio is not None:
            self.data[HAS_ENCRYPTED_AUDIO] = bool(audio)

    def write(self):
        # RPG Maker writes System.json compact, without a BOM
        encoding = "utf-8" if self.encoding == "utf-8-sig" else self.encoding
        text = json.dumps(self.data, ensure_ascii=False, separators=(",", ":"))
        atomic_write(self.path, text.encode(encoding))
        log.debug("Wrote %s", self.path)
