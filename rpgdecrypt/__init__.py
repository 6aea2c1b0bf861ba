"""Decrypt RPG Maker MV/MZ game assets."""

__version__ = "1.0.0"

from .decrypter import Decrypter, is_encrypted, obfuscate, restore, restore_png_header
from .errors import (
    CollisionError,
    FileTooShortError,
    KeyIOError,
    KeyNotFoundError,
    KeyResolutionError,
    MalformedKeyError,
    NotEncryptedError,
    RootNotFoundError,
    RpgDecryptError,
    SystemJsonError,
    TransformError,
)
from .filetypes import AssetType, classify
from .keys import ProjectKey, derive_key, derive_key_from_file, parse_key, resolve_key
from .output import OutputPolicy, Placement
from .pipeline import FileEntry, Report, decrypt_file, encrypt_file, restore_image, run, scan
