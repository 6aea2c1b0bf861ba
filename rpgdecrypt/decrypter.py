"""Header transform for RPG Maker MV/MZ encrypted assets.

An encrypted asset is laid out as::

    | fake header (16 bytes) | original header XOR key (16 bytes) | rest of the file |

Only the first 16 bytes of the original file are touched, so restoring a
file means dropping the fake header and XOR-ing the next 16 bytes with the
project key again.
"""

from .errors import FileTooShortError, NotEncryptedError

HEADER_LEN = 16
KEY_LEN = 16

FAKE_SIGNATURE = "5250474d56000000"
FAKE_VERSION = "000301"
FAKE_REMAIN = "0000000000"

SIGNATURE = bytes.fromhex(FAKE_SIGNATURE + FAKE_VERSION + FAKE_REMAIN)

PNG_HEADER = bytes.fromhex("89 50 4E 47 0D 0A 1A 0A 00 00 00 0D 49 48 44 52")


def get_normal_png_header(length=HEADER_LEN):
    return PNG_HEADER[:length]


def x_or_bytes(data, key):
    """XOR the first HEADER_LEN bytes of ``data`` with ``key``."""
    buf = bytearray(data)
    for i in range(min(HEADER_LEN, len(buf))):
        buf[i] ^= key[i % len(key)]
    return bytes(buf)


def verify_fake_header(file_header):
    return bytes(file_header[:HEADER_LEN]) == SIGNATURE


def is_encrypted(buffer):
    return len(buffer) >= HEADER_LEN * 2 and verify_fake_header(buffer)


def restore(buffer, key):
    """Return the original file content for an encrypted ``buffer``.

    Raises FileTooShortError for buffers under 32 bytes and NotEncryptedError
    when the fake header is missing.
    """
    if len(buffer) < HEADER_LEN * 2:
        raise FileTooShortError(len(buffer))
    if not verify_fake_header(buffer):
        raise NotEncryptedError()
    return x_or_bytes(buffer[HEADER_LEN:], key)


def obfuscate(buffer, key):
    if not buffer:
        raise ValueError("File is empty or can't be read.")
    if len(buffer) < HEADER_LEN:
        raise FileTooShortError(len(buffer))
    return SIGNATURE + x_or_bytes(buffer, key)


def restore_png_header(buffer):
    """Rebuild an encrypted PNG without knowing the key.

    Every PNG starts with the same 16 bytes (magic plus the IHDR chunk
    header), so the encrypted part can be replaced wholesale.
    """
    if len(buffer) < HEADER_LEN * 2:
        raise FileTooShortError(len(buffer))
    if not verify_fake_header(buffer):
        raise NotEncryptedError()
    return get_normal_png_header() + bytes(buffer[HEADER_LEN * 2:])


class Decrypter:
    """Restores and re-encrypts buffers with a single project key."""

    def __init__(self, key):
        key = bytes(key)
        if len(key) != KEY_LEN:
            raise ValueError(f"Key must be {KEY_LEN} bytes, got {len(key)}")
        self.key = key

    def decrypt(self, buffer):
        return restore(buffer, self.key)

    def encrypt(self, buffer):
        return obfuscate(buffer, self.key)

    def __repr__(self):
        return f"Decrypter(key={self.key.hex()})"
