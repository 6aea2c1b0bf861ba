"""Exceptions raised by rpgdecrypt."""


class RpgDecryptError(Exception):
    """Base class for all errors raised by this package."""


class RootNotFoundError(RpgDecryptError):
    def __init__(self, path):
        super().__init__(f"Game directory not found: {path}")
        self.path = path


class SystemJsonError(RpgDecryptError):
    """System.json exists but could not be parsed."""


class KeyResolutionError(RpgDecryptError):
    """The project key could not be determined."""


class KeyNotFoundError(KeyResolutionError):
    def __init__(self, root):
        super().__init__(
            f"No encryption key found in {root}: System.json has no key "
            "and no encrypted image is available to derive one from."
        )
        self.root = root


class MalformedKeyError(KeyResolutionError):
    def __init__(self, key, reason):
        super().__init__(f"Invalid encryption key '{key}': {reason}")
        self.key = key
        self.reason = reason


class KeyIOError(KeyResolutionError):
    def __init__(self, path, cause):
        super().__init__(f"Could not read {path}: {cause}")
        self.path = path
        self.cause = cause


class TransformError(RpgDecryptError):
    """A single buffer could not be restored."""


class FileTooShortError(TransformError):
    def __init__(self, length):
        super().__init__(f"File is too short to decrypt ({length} bytes, need at least 32)")
        self.length = length


class NotEncryptedError(TransformError):
    def __init__(self):
        super().__init__("Fake-Header doesn't match the RPG Maker signature.")


class CollisionError(RpgDecryptError):
    def __init__(self, path):
        super().__init__(f"No free output name for {path}")
        self.path = path
