import contextlib
import logging
import os
import signal
import subprocess
import sys
from typing import Iterator

from ddbench.errors import DirectoryNotFoundError, InsufficientPrivilegeError, MemoryInfoError

logger = logging.getLogger(__name__)

MEMINFO_PATH = "/proc/meminfo"
DROP_CACHES_PATH = "/proc/sys/vm/drop_caches"


def get_free_memory(meminfo_path: str = MEMINFO_PATH) -> int:
    """
    Return the free system RAM in bytes.

    Parses the MemFree line of /proc/meminfo (Linux only), which is the
    'free' column of `free -b`.
    """
    try:
        with open(meminfo_path, "r") as f:
            for line in f:
                if line.startswith("MemFree:"):
                    # e.g. "MemFree:         8123456 kB"
                    parts = line.split()
                    return int(parts[1]) * 1024
    except OSError as e:
        raise MemoryInfoError(f"Cannot read {meminfo_path}: {e}") from e
    raise MemoryInfoError(f"MemFree not found in {meminfo_path}")


def is_privileged() -> bool:
    return os.geteuid() == 0


def require_privilege(reason: str) -> None:
    if not is_privileged():
        raise InsufficientPrivilegeError(f"Root access is needed ({reason})")


def drop_caches() -> None:
    """
    Flush the page cache (sync, then echo 3 > /proc/sys/vm/drop_caches).
    Needs root. A failure is reported and the run goes on.
    """
    try:
        logger.debug("Dropping page cache")
        subprocess.run(["sh", "-c", f"sync; echo 3 > {DROP_CACHES_PATH}"], check=True)
    except subprocess.CalledProcessError as e:
        logger.warning(f"drop_caches failed: {e}")


def verify_dir(path: str) -> str:
    """Check that path is an existing directory and return it normalized."""
    if not os.path.isdir(path):
        raise DirectoryNotFoundError(path)
    return os.path.normpath(path)


def remove_file(path: str) -> None:
    with contextlib.suppress(FileNotFoundError):
        os.remove(path)


@contextlib.contextmanager
def scratch_file(path: str) -> Iterator[str]:
    """Yield path and remove the file on every way out of the block."""
    try:
        yield path
    finally:
        remove_file(path)
        logger.debug(f"Removed test file {path}")


def _raise_exit(signum, frame):
    sys.exit(128 + signum)


def exit_on_sigterm() -> None:
    """Turn SIGTERM into SystemExit so that cleanup handlers run."""
    signal.signal(signal.SIGTERM, _raise_exit)
