"""Extension table for RPG Maker encrypted assets.

MV renames ``x.png`` to ``x.rpgmvp``; MZ appends an underscore (``x.png_``).
Classification only ever looks at the file name.
"""

import enum
from pathlib import Path


class AssetType(enum.Enum):
    IMAGE = ("png", "rpgmvp", "png_")
    AUDIO = ("ogg", "rpgmvo", "ogg_")
    VIDEO = ("m4a", "rpgmvm", "m4a_")

    def __init__(self, restored, mv_ext, mz_ext):
        self.restored = restored
        self.mv_ext = mv_ext
        self.mz_ext = mz_ext

    def encrypted_ext(self, mz=False):
        return self.mz_ext if mz else self.mv_ext


ENCRYPTED_EXTENSIONS = {
    '.rpgmvp': AssetType.IMAGE,
    '.png_': AssetType.IMAGE,
    '.rpgmvo': AssetType.AUDIO,
    '.ogg_': AssetType.AUDIO,
    '.rpgmvm': AssetType.VIDEO,
    '.m4a_': AssetType.VIDEO,
}

RESTORED_EXTENSIONS = {
    '.png': AssetType.IMAGE,
    '.ogg': AssetType.AUDIO,
    '.m4a': AssetType.VIDEO,
}

# only images have a fully predictable 16 byte header
REFERENCE_EXTENSIONS = ('.rpgmvp', '.png_')


def classify(path):
    """Return the AssetType for an encrypted file name, or None to ignore it."""
    return ENCRYPTED_EXTENSIONS.get(Path(path).suffix.lower())


def classify_restored(path):
    return RESTORED_EXTENSIONS.get(Path(path).suffix.lower())


def is_reference_candidate(path):
    return Path(path).suffix.lower() in REFERENCE_EXTENSIONS


def restored_name(path):
    path = Path(path)
    asset_type = classify(path)
    if asset_type is None:
        return path.name
    return f"{path.stem}.{asset_type.restored}"


def restored_path(path):
    path = Path(path)
    return path.with_name(restored_name(path))


def encrypted_path(path, mz=False):
    """Map ``x.png`` to ``x.rpgmvp`` (or ``x.png_`` for MZ)."""
    path = Path(path)
    asset_type = classify_restored(path)
    if asset_type is None:
        raise ValueError(f"Not a known asset extension: {path.name}")
    return path.with_name(f"{path.stem}.{asset_type.encrypted_ext(mz)}")
