"""
Measure a disk's read/write rates with dd.

A test file is written to the given directory and read back, as many times as
requested, recording dd's rate and the free RAM before and after each
operation. The results are printed at the end of the run, written to
w_results.data / r_results.data and plotted to w_results.png / r_results.png.
A transcript of the run goes to run.log.

Usage:
    ddbench-sfm -i 10 -s 1G -d /mnt/disk            # write + read, 10 times
    ddbench-sfm -i 10 -s 1G -d /mnt/disk -n         # bypass the page cache
    sudo ddbench-sfm -i 10 -s 1G -d /mnt/disk -r    # write once, read 10 times
"""

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from ddbench import dd
from ddbench.errors import DDBenchError, MissingArgumentError, UsageError
from ddbench.report import (
    LOG_FILE_NAME,
    R_PLOT_FILE_NAME,
    R_RESULT_FILE_NAME,
    SEPARATOR,
    W_PLOT_FILE_NAME,
    W_RESULT_FILE_NAME,
    MeasurementRow,
    RunResults,
    render_plot,
    transcript,
    write_results,
)
from ddbench.system import (
    drop_caches,
    exit_on_sigterm,
    get_free_memory,
    remove_file,
    require_privilege,
    scratch_file,
    verify_dir,
)
from ddbench.units import BLOCK_SIZE, ByteSize, eng_value, parse_size, rate_to_mbps

logger = logging.getLogger(__name__)

TEST_FILE_NAME = "tempfile"


class Operation(Enum):
    WRITE = "write"
    READ = "read"


@dataclass(frozen=True)
class RunConfig:
    iterations: int
    size: ByteSize
    test_dir: str
    direct_io: bool = False
    flush_cache: bool = False
    clean: bool = False
    read_only: bool = False
    result_dir: str = "."

    @property
    def test_file(self) -> str:
        return os.path.join(self.test_dir, TEST_FILE_NAME)

    def result_path(self, name: str) -> str:
        return os.path.join(self.result_dir, name)

    def dd_args(self, operation: Operation) -> List[str]:
        if not self.direct_io:
            return []
        return ["oflag=direct"] if operation is Operation.WRITE else ["iflag=direct"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Measure disk R/W rates by writing a file with dd and reading it back.",
        epilog=f"Results go to '{W_RESULT_FILE_NAME}', '{R_RESULT_FILE_NAME}', their .png plots "
        f"and '{LOG_FILE_NAME}' in the output directory.",
    )
    parser.add_argument("-i", "--iterations", type=int,
                        help="Number of times the file will be written and read back")
    parser.add_argument("-s", "--size",
                        help="Size of the file, with an optional unit (B, k, M, G; default k), e.g. 2G")
    parser.add_argument("-d", "--dir",
                        help=f"Directory where the file '{TEST_FILE_NAME}' will be written")
    parser.add_argument("-n", "--no-cache", action="store_true",
                        help="Bypass the page cache with dd's iflag/oflag=direct")
    parser.add_argument("-f", "--flush", action="store_true",
                        help="Drop the page cache before each R/W operation (needs root)")
    parser.add_argument("-c", "--clean", action="store_true",
                        help="Delete the test file before each iteration")
    parser.add_argument("-r", "--ro", action="store_true",
                        help="Write the file once, flush the cache, then only read (needs root)")
    parser.add_argument("-o", "--out-dir", default=".",
                        help="Directory to save the results (default: current directory)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def build_config(args: argparse.Namespace) -> RunConfig:
    """Validate parsed arguments. Raises a DDBenchError on the first problem."""
    if args.iterations is None:
        raise MissingArgumentError("Number of iterations")
    if not args.size:
        raise MissingArgumentError("File size")
    if args.dir is None:
        raise MissingArgumentError("Test directory")

    if args.iterations < 1:
        raise UsageError(f"Number of iterations must be positive, got {args.iterations}")
    if args.clean and args.ro:
        raise UsageError("--clean cannot be used with --ro: the file is only written once")

    if args.flush or args.ro:
        require_privilege("--flush" if args.flush else "--ro")

    result_dir = verify_dir(args.out_dir)
    test_dir = verify_dir(args.dir)
    size = parse_size(args.size)

    return RunConfig(
        iterations=args.iterations,
        size=size,
        test_dir=test_dir,
        direct_io=args.no_cache,
        flush_cache=args.flush or args.ro,
        clean=args.clean,
        read_only=args.ro,
        result_dir=result_dir,
    )


class SingleFileMeasurer:
    """
    Runs the write/read iterations for one RunConfig.

    The dd runner, memory sampler and cache flush are attributes so that they
    can be swapped out.
    """

    def __init__(
        self,
        config: RunConfig,
        run_dd: Callable[..., dd.CopySummary] = dd.run_dd,
        free_memory: Callable[[], int] = get_free_memory,
        flush: Callable[[], None] = drop_caches,
    ):
        self.config = config
        self.run_dd = run_dd
        self.free_memory = free_memory
        self.flush = flush

    def _copy(self, operation: Operation) -> dd.CopySummary:
        extra_args = self.config.dd_args(operation)
        if operation is Operation.WRITE:
            return self.run_dd(dd.ZERO_SOURCE, self.config.test_file, block_size=BLOCK_SIZE,
                               count=self.config.size.count, extra_args=extra_args)
        return self.run_dd(self.config.test_file, dd.NULL_SINK, block_size=BLOCK_SIZE,
                           extra_args=extra_args)

    def measure(self, operation: Operation) -> MeasurementRow:
        if self.config.flush_cache:
            self.flush()

        ram_before = self.free_memory()
        summary = self._copy(operation)
        ram_after = self.free_memory()

        mbps = rate_to_mbps(summary.rate, summary.rate_units)
        logger.debug(f"{operation.value}: {summary.nbytes} bytes, {mbps:.2f} MB/s")
        return MeasurementRow(ram_before, ram_after, summary.rate, summary.rate_units)

    def run(self) -> RunResults:
        results = RunResults()
        writes_enabled = True

        for i in range(1, self.config.iterations + 1):
            logger.info(f"Iteration {i}/{self.config.iterations}")

            if self.config.clean:
                remove_file(self.config.test_file)

            if writes_enabled:
                results.write_rows.append(self.measure(Operation.WRITE))

                # Read-only mode: the file stays, only reads from now on
                if self.config.read_only:
                    self.flush()
                    writes_enabled = False

            results.read_rows.append(self.measure(Operation.READ))

        return results


def report_parameters(out: logging.Logger, config: RunConfig) -> None:
    out.info(SEPARATOR)
    out.info("Starting test with the following parameters:")
    out.info(SEPARATOR)
    out.info(f"Number of iterations : {config.iterations}")
    out.info(f"Test file            : {config.test_file}")
    out.info(f"Actual file Size     : {eng_value(config.size.nbytes)}")
    out.info(f"dd's 'bs' argument   : {BLOCK_SIZE}")
    out.info(f"dd's 'count' argument: {config.size.count}")
    if config.direct_io:
        out.info(f"dd's extra arguments : for read = '{' '.join(config.dd_args(Operation.READ))}'")
        out.info(f"{'':23s}for write = '{' '.join(config.dd_args(Operation.WRITE))}'")
    else:
        out.info("dd's extra arguments : None")
    out.info(f"Flush local cache    : {'Yes' if config.flush_cache else 'No'}")
    out.info(f"Read-only mode       : {'Yes' if config.read_only else 'No'}")
    out.info(f"Result directory     : {config.result_dir}")
    out.info(SEPARATOR)


def run(config: RunConfig, measurer: Optional[SingleFileMeasurer] = None) -> RunResults:
    """Run the whole measurement, write the result files and plot them."""
    measurer = measurer or SingleFileMeasurer(config)
    w_result_file = config.result_path(W_RESULT_FILE_NAME)
    r_result_file = config.result_path(R_RESULT_FILE_NAME)

    with transcript(config.result_path(LOG_FILE_NAME)) as out:
        report_parameters(out, config)

        with scratch_file(config.test_file):
            results = measurer.run()

        write_results(out, "Write", results.write_rows, w_result_file)
        write_results(out, "Read", results.read_rows, r_result_file)

    render_plot(r_result_file, config.result_path(R_PLOT_FILE_NAME))
    render_plot(w_result_file, config.result_path(W_PLOT_FILE_NAME))
    return results


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
        run(config)
    except DDBenchError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
