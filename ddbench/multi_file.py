"""
Measure the average transfer rate while reading many files.

First run in write mode to create the test files, then run in read mode
(the default) to read every test file in the directory and time the whole
pass. The files are not deleted after reading so the read test can be
repeated; use clean mode to remove them.

Usage:
    ddbench-mfm -d /mnt/disk -w -n 100 -s 64M   # write 100 files of 64 MiB
    ddbench-mfm -d /mnt/disk                    # read them all
    ddbench-mfm -d /mnt/disk -c                 # delete them
"""

import argparse
import logging
import os
import shutil
import sys
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from ddbench import dd
from ddbench.errors import (
    DDBenchError,
    MissingArgumentError,
    NoTestFilesError,
    UsageError,
    ZeroElapsedTimeError,
)
from ddbench.system import exit_on_sigterm, verify_dir
from ddbench.units import ByteSize, eng_value, parse_size

logger = logging.getLogger(__name__)

# Test files are named "<prefix>_<n>", n starting at 1
FILE_NAME_PREFIX = "tempfile"

SEPARATOR = "=" * 35


class Mode(Enum):
    READ = "read"
    WRITE = "write"
    CLEAN = "clean"


@dataclass(frozen=True)
class MultiFileConfig:
    test_dir: str
    mode: Mode = Mode.READ
    num_files: Optional[int] = None
    size: Optional[ByteSize] = None


@dataclass(frozen=True)
class ReadSummary:
    num_files: int
    total_bytes: int
    elapsed: float

    @property
    def rate(self) -> float:
        """Average rate in bytes per second."""
        if self.elapsed <= 0:
            raise ZeroElapsedTimeError(
                f"Elapsed time was {self.elapsed} s, cannot compute the average rate"
            )
        return self.total_bytes / self.elapsed


def numbered_file(test_dir: str, index: int) -> str:
    return os.path.join(test_dir, f"{FILE_NAME_PREFIX}_{index}")


def is_test_file(name: str) -> bool:
    return name.startswith(f"{FILE_NAME_PREFIX}_")


def find_test_files(test_dir: str) -> List[str]:
    """Regular files in test_dir (not recursive) named like a test file."""
    return sorted(
        os.path.join(test_dir, name)
        for name in os.listdir(test_dir)
        if is_test_file(name) and os.path.isfile(os.path.join(test_dir, name))
    )


def clean_files(test_dir: str) -> int:
    """Delete every test file entry in test_dir and return how many were removed."""
    removed = 0
    for name in sorted(os.listdir(test_dir)):
        if not is_test_file(name):
            continue
        path = os.path.join(test_dir, name)
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.remove(path)
        logger.debug(f"Removed {path}")
        removed += 1
    return removed


def write_files(
    config: MultiFileConfig, write_file: Callable[..., dd.CopySummary] = dd.write_file
) -> List[str]:
    paths = []
    for i in range(1, config.num_files + 1):
        path = numbered_file(config.test_dir, i)
        write_file(path, config.size.count)
        paths.append(path)
    return paths


def read_files(
    test_dir: str,
    read_file: Callable[..., dd.CopySummary] = dd.read_file,
    clock: Callable[[], float] = time.monotonic,
) -> ReadSummary:
    """Read all test files into /dev/null, timing the whole pass."""
    paths = find_test_files(test_dir)
    if not paths:
        raise NoTestFilesError(f"No '{FILE_NAME_PREFIX}_*' files found in {test_dir}")

    total_bytes = 0
    start = clock()
    for path in paths:
        total_bytes += read_file(path).nbytes
    elapsed = clock() - start

    return ReadSummary(num_files=len(paths), total_bytes=total_bytes, elapsed=elapsed)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Measure the average disk transfer rate while reading multiple files.",
    )
    parser.add_argument("-d", "--dir", help="Directory where the files are written to / read from")
    parser.add_argument("-w", "--write", action="store_true",
                        help="Write mode. Read mode is used when omitted")
    parser.add_argument("-n", "--num", type=int, help="Number of files to write (write mode)")
    parser.add_argument("-s", "--size",
                        help="Size of each file (write mode), with an optional unit "
                        "(B, k, M, G; default k)")
    parser.add_argument("-c", "--clean", action="store_true",
                        help="Delete the test files from the directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def build_config(args: argparse.Namespace) -> MultiFileConfig:
    if args.dir is None:
        raise MissingArgumentError("Test directory")

    if args.write:
        if args.num is None:
            raise MissingArgumentError("Number of files")
        if not args.size:
            raise MissingArgumentError("File size")
        if args.num < 1:
            raise UsageError(f"Number of files must be positive, got {args.num}")

    test_dir = verify_dir(args.dir)

    if args.clean:
        return MultiFileConfig(test_dir=test_dir, mode=Mode.CLEAN)
    if args.write:
        return MultiFileConfig(
            test_dir=test_dir, mode=Mode.WRITE, num_files=args.num, size=parse_size(args.size)
        )
    return MultiFileConfig(test_dir=test_dir, mode=Mode.READ)


def run(config: MultiFileConfig) -> None:
    if config.mode is Mode.CLEAN:
        print(f"Cleaning test files from '{config.test_dir}'...")
        removed = clean_files(config.test_dir)
        print(f"Done! ({removed} removed)")
        return

    if config.mode is Mode.WRITE:
        print("Writing files....")
        write_files(config)
        print()
        print(SEPARATOR)
        print("Write results:")
        print(SEPARATOR)
        print(f"Test directory  : {config.test_dir}")
        print(f"Number of files : {config.num_files}")
        print(f"Size of files   : {eng_value(config.size.nbytes)}")
        print(SEPARATOR)
        return

    print("Reading files...")
    summary = read_files(config.test_dir)
    rate = summary.rate
    print()
    print(SEPARATOR)
    print("Read Results:")
    print(SEPARATOR)
    print(f"Number of files found : {summary.num_files}")
    print(f"Total size transferred: {eng_value(summary.total_bytes)}")
    print(f"Total time elapsed    : {summary.elapsed:.3f} s")
    print(f"Average total rate    : {eng_value(int(rate))}/s")
    print(SEPARATOR)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    exit_on_sigterm()

    try:
        config = build_config(args)
        logger.info(f"{config.mode.value.capitalize()} mode")
        run(config)
    except DDBenchError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
