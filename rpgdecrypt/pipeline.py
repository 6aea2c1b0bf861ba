"""Walking a game directory and restoring every encrypted asset in it."""

import logging
import os
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from . import decrypter
from .errors import CollisionError, NotEncryptedError, RootNotFoundError, SystemJsonError, TransformError
from .filetypes import AssetType, classify, classify_restored, encrypted_path, restored_path
from .keys import as_project_key, resolve_key
from .output import OutputPolicy, atomic_write
from .system_json import SystemJson

log = logging.getLogger(__name__)

PENDING = "pending"
DECRYPTED = "decrypted"
PASSED_THROUGH = "passed-through"
FAILED = "failed"


@dataclass
class FileEntry:
    source: Path
    asset_type: AssetType
    destination: Optional[Path] = None
    status: str = PENDING
    reason: str = ""

    @property
    def ok(self):
        return self.status in (DECRYPTED, PASSED_THROUGH)

    def fail(self, reason):
        self.status = FAILED
        self.reason = reason


@dataclass
class Report:
    """Outcome of a scan or decryption run.

    ``succeeded`` includes files that were already plain and copied through
    unchanged; those are also counted in ``passed_through``.
    """

    root: Path
    placement: Optional[str] = None
    scanned: int = 0
    eligible: int = 0
    succeeded: int = 0
    failed: int = 0
    passed_through: int = 0
    by_type: Counter = field(default_factory=Counter)
    files: List[Path] = field(default_factory=list)
    failures: List[FileEntry] = field(default_factory=list)
    elapsed: float = 0.0
    system_json_updated: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)
    _final: bool = field(default=False, init=False, repr=False, compare=False)

    def add_candidate(self, path, asset_type):
        with self._lock:
            self._check_open()
            self.eligible += 1
            self.by_type[asset_type] += 1
            self.files.append(path)

    def add_scanned(self, count=1):
        with self._lock:
            self._check_open()
            self.scanned += count

    def record(self, entry):
        with self._lock:
            self._check_open()
            if entry.ok:
                self.succeeded += 1
                if entry.status == PASSED_THROUGH:
                    self.passed_through += 1
            else:
                self.failed += 1
                self.failures.append(entry)

    def finalize(self, elapsed=0.0):
        with self._lock:
            self.elapsed = elapsed
            self.failures.sort(key=lambda e: str(e.source))
            self.files = sorted(self.files, key=str)
            self._final = True
        return self

    @property
    def ok(self):
        return self.failed == 0

    def _check_open(self):
        if self._final:
            raise RuntimeError("Report is already finalized")


def _check_root(root):
    root = Path(root)
    if not root.is_dir():
        raise RootNotFoundError(root)
    return root.absolute()


def walk(root, exclude=None):
    """Yield every file under ``root`` in sorted order.

    Directory symlinks are not followed, so link cycles cannot recurse.
    ``exclude`` is a directory that is skipped entirely.
    """
    exclude = Path(exclude).absolute() if exclude is not None else None
    for dirpath, dirs, files in os.walk(root):
        dirs.sort()
        if exclude is not None:
            dirs[:] = [d for d in dirs if (Path(dirpath) / d).absolute() != exclude]
        for name in sorted(files):
            yield Path(dirpath) / name


def scan(root):
    """Count decryptable files without reading them or needing a key."""
    root = _check_root(root)
    start = time.monotonic()
    report = Report(root)
    for path in walk(root):
        report.add_scanned()
        asset_type = classify(path)
        if asset_type is not None:
            report.add_candidate(path, asset_type)
    return report.finalize(time.monotonic() - start)


def process_file(entry, key, policy):
    """Read, restore and write one file; errors end up on ``entry``."""
    try:
        with open(entry.source, "rb") as f:
            data = f.read()
        try:
            restored = decrypter.restore(data, key.data)
            entry.status = DECRYPTED
        except NotEncryptedError:
            log.debug("%s is not encrypted, copying as is", entry.source)
            restored = data
            entry.status = PASSED_THROUGH

        atomic_write(entry.destination, restored)
        if policy.removes_original and entry.source != entry.destination:
            os.remove(entry.source)
    except TransformError as e:
        entry.fail(str(e))
    except Exception as e:
        log.debug("Error processing %s", entry.source, exc_info=True)
        entry.fail(f"{type(e).__name__}: {e}")
    return entry


def _mark_decrypted(root):
    try:
        system = SystemJson.find(root)
    except (OSError, SystemJsonError) as e:
        log.warning("Could not update System.json: %s", e)
        return False
    if system is None:
        return False
    if not (system.has_encrypted_images or system.has_encrypted_audio):
        return False
    system.set_encrypted(images=False, audio=False)
    try:
        system.write()
    except OSError as e:
        log.warning("Could not update %s: %s", system.path, e)
        return False
    return True


def run(root, policy=None, key=None, jobs=None, update_system_json=True, progress=None):
    """Decrypt every asset under ``root`` and return the finalized Report.

    The key is resolved before any file is touched, so a missing key aborts
    the run with KeyResolutionError. Per-file problems are recorded in the
    report and never stop the other files. ``progress`` is called with each
    finished FileEntry and the report, from the calling thread.
    """
    root = _check_root(root)
    policy = policy or OutputPolicy.next_to()
    if jobs is not None and jobs < 1:
        raise ValueError("jobs must be at least 1")
    key = resolve_key(root) if key is None else as_project_key(key)

    start = time.monotonic()
    report = Report(root, policy.placement.value)

    entries = []
    for path in walk(root, exclude=policy.directory):
        report.add_scanned()
        asset_type = classify(path)
        if asset_type is None:
            continue
        report.add_candidate(path, asset_type)
        entry = FileEntry(path, asset_type)
        # claimed serially in path order: the first file wins a contested name
        try:
            entry.destination = policy.destination_for(path, root)
        except CollisionError as e:
            entry.fail(str(e))
        entries.append(entry)

    log.debug("Found %d of %d file(s) to decrypt in %s", report.eligible, report.scanned, root)

    for entry in entries:
        if entry.status == FAILED:
            report.record(entry)
            if progress:
                progress(entry, report)

    with ThreadPoolExecutor(max_workers=jobs) as executor:
        futures = [
            executor.submit(process_file, entry, key, policy)
            for entry in entries
            if entry.status == PENDING
        ]
        for future in as_completed(futures):
            entry = future.result()
            report.record(entry)
            if progress:
                progress(entry, report)

    if update_system_json and policy.modifies_project and report.ok and report.succeeded:
        report.system_json_updated = _mark_decrypted(root)

    return report.finalize(time.monotonic() - start)


def decrypt_file(path, key, output=None):
    """Decrypt a single file; returns the path written.

    Unlike a full run, a plain input is an error here.
    """
    path = Path(path)
    key = as_project_key(key)
    with open(path, "rb") as f:
        data = f.read()
    restored = decrypter.restore(data, key.data)
    if not output and classify(path) is None:
        raise TransformError(f"Unknown encrypted extension, pass an output path: {path.name}")
    dest = Path(output) if output else restored_path(path)
    atomic_write(dest, restored)
    return dest


def encrypt_file(path, key, output=None, mz=False):
    path = Path(path)
    key = as_project_key(key)
    if not output and classify_restored(path) is None:
        raise TransformError(f"Unknown asset extension, pass an output path: {path.name}")
    dest = Path(output) if output else encrypted_path(path, mz)
    with open(path, "rb") as f:
        data = f.read()
    atomic_write(dest, decrypter.obfuscate(data, key.data))
    return dest


def restore_image(path, output=None):
    """Rebuild an encrypted PNG without the key."""
    path = Path(path)
    if classify(path) is not AssetType.IMAGE:
        raise TransformError(f"Only encrypted images can be restored without a key: {path.name}")
    with open(path, "rb") as f:
        data = f.read()
    dest = Path(output) if output else restored_path(path)
    atomic_write(dest, decrypter.restore_png_header(data))
    return dest
