"""
Driver for the dd block-copy utility.

dd reports a summary on stderr whose last line looks like

    16777216 bytes (17 MB, 16 MiB) copied, 0.0121 s, 1.4 GB/s

The byte count is the first field, the rate and its unit are the last two.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from ddbench.errors import CopyToolError
from ddbench.units import BLOCK_SIZE

logger = logging.getLogger(__name__)

DD_BIN = os.getenv("DDBENCH_DD", "dd")
ZERO_SOURCE = "/dev/zero"
NULL_SINK = "/dev/null"


@dataclass(frozen=True)
class CopySummary:
    nbytes: int
    rate: str
    rate_units: str


def parse_summary(output: str) -> CopySummary:
    """Parse the last non-empty line of dd's stderr."""
    lines = [line for line in output.strip().split("\n") if line.strip()]
    if not lines:
        raise CopyToolError("dd produced no summary")

    fields = lines[-1].split()
    if (len(fields) < 4 or not fields[0].isdigit() or fields[1] != "bytes"
            or not fields[-1].endswith("/s")):
        raise CopyToolError(f"Unrecognized dd summary: {lines[-1]!r}")

    return CopySummary(nbytes=int(fields[0]), rate=fields[-2], rate_units=fields[-1])


def dd_command(
    source: str,
    target: str,
    block_size: int = BLOCK_SIZE,
    count: Optional[int] = None,
    extra_args: Optional[List[str]] = None,
) -> List[str]:
    command = [DD_BIN, f"if={source}", f"of={target}", f"bs={block_size}"]
    if count is not None:
        command.append(f"count={count}")
    command.extend(extra_args or [])
    return command


def run_dd(
    source: str,
    target: str,
    block_size: int = BLOCK_SIZE,
    count: Optional[int] = None,
    extra_args: Optional[List[str]] = None,
) -> CopySummary:
    """Run dd to completion and return its parsed summary."""
    command = dd_command(source, target, block_size, count, extra_args)
    logger.debug(f"Running: {' '.join(command)}")

    # The C locale keeps the decimal point and unit names parseable
    env = dict(os.environ, LC_ALL="C")
    try:
        process = subprocess.Popen(command, stdout=subprocess.PIPE, stderr=subprocess.PIPE, env=env)
    except FileNotFoundError:
        raise CopyToolError(f"dd command not found: {DD_BIN}")

    with process:
        try:
            _, stderr = process.communicate()
        except BaseException:
            # interrupted (SIGTERM, Ctrl-C): do not leave dd running
            process.kill()
            process.wait()
            raise

    report_text = stderr.decode("utf-8", errors="replace")
    if process.returncode != 0:
        raise CopyToolError(f"{' '.join(command)} failed (exit {process.returncode}): {report_text.strip()}")

    return parse_summary(report_text)


def write_file(path: str, count: int, direct: bool = False) -> CopySummary:
    """Fill path with count zero blocks."""
    return run_dd(ZERO_SOURCE, path, count=count, extra_args=["oflag=direct"] if direct else None)


def read_file(path: str, direct: bool = False) -> CopySummary:
    """Read path into /dev/null."""
    return run_dd(path, NULL_SINK, extra_args=["iflag=direct"] if direct else None)
