"""Where restored files go."""

import enum
import logging
import os
import stat
import tempfile
import threading
from pathlib import Path

from .errors import CollisionError
from .filetypes import restored_name

log = logging.getLogger(__name__)

MAX_COLLISION_ATTEMPTS = 10000

# os.umask can only be read by setting it, which is not safe from worker
# threads, so it is read once here.
_UMASK = os.umask(0)
os.umask(_UMASK)


class Placement(enum.Enum):
    NEXT_TO = "next-to"
    REPLACE = "replace"
    OUTPUT = "output"
    FLATTEN = "flatten"


def _file_mode(path):
    """Mode for a file written to ``path``: the existing file's, else 0o666 minus the umask."""
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        return 0o666 & ~_UMASK


def atomic_write(path, data):
    """Write ``data`` to ``path`` via a temporary file in the same directory."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".part", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        # mkstemp creates the file as 0o600
        os.chmod(tmp, _file_mode(path))
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise


class OutputPolicy:
    """Maps a source file to its destination for one run.

    Use the ``next_to``, ``replace``, ``output`` and ``flatten`` constructors.
    Every policy keeps a registry of the destinations handed out so that two
    source files never share one. Flatten picks a free ``_N`` name instead;
    the other placements raise CollisionError for the second claimant
    (``a.rpgmvp`` and ``a.png_`` both restore to ``a.png``).
    """

    def __init__(self, placement, directory=None):
        placement = Placement(placement)
        if placement in (Placement.OUTPUT, Placement.FLATTEN):
            if directory is None:
                raise ValueError(f"{placement.value} requires a target directory")
            directory = Path(directory).absolute()
        elif directory is not None:
            raise ValueError(f"{placement.value} does not take a target directory")
        self.placement = placement
        self.directory = directory
        self._claimed = set()
        self._lock = threading.Lock()

    @classmethod
    def next_to(cls):
        return cls(Placement.NEXT_TO)

    @classmethod
    def replace(cls):
        return cls(Placement.REPLACE)

    @classmethod
    def output(cls, directory):
        return cls(Placement.OUTPUT, directory)

    @classmethod
    def flatten(cls, directory):
        return cls(Placement.FLATTEN, directory)

    @property
    def removes_original(self):
        return self.placement is Placement.REPLACE

    @property
    def modifies_project(self):
        return self.placement in (Placement.NEXT_TO, Placement.REPLACE)

    def destination_for(self, source, root):
        source = Path(source)
        if self.placement is Placement.FLATTEN:
            rel = source.relative_to(root)
            flat = "_".join(rel.parent.parts + (restored_name(source),))
            return self._claim(self.directory / flat)

        if self.placement is Placement.OUTPUT:
            dest = self.directory / source.relative_to(root).parent / restored_name(source)
        else:
            dest = source.with_name(restored_name(source))
        # files already on disk are overwritten, so reruns land on the same names
        with self._lock:
            if dest in self._claimed:
                raise CollisionError(dest)
            self._claimed.add(dest)
        return dest

    def _claim(self, candidate):
        stem, suffix = candidate.stem, candidate.suffix
        with self._lock:
            path = candidate
            counter = 1
            while path in self._claimed or path.exists():
                if counter > MAX_COLLISION_ATTEMPTS:
                    raise CollisionError(candidate)
                path = candidate.with_name(f"{stem}_{counter}{suffix}")
                counter += 1
            self._claimed.add(path)
        if path != candidate:
            log.debug("Name collision on %s, using %s", candidate.name, path.name)
        return path

    def __repr__(self):
        if self.directory is None:
            return f"OutputPolicy({self.placement.value})"
        return f"OutputPolicy({self.placement.value}, {self.directory})"
