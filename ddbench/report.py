import contextlib
import datetime
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

import numpy as np

from ddbench.plot import plot_results
from ddbench.units import eng_value, rate_to_mbps

logger = logging.getLogger(__name__)

TRANSCRIPT_LOGGER = "ddbench.transcript"

R_RESULT_FILE_NAME = "r_results.data"
W_RESULT_FILE_NAME = "w_results.data"
R_PLOT_FILE_NAME = os.path.splitext(R_RESULT_FILE_NAME)[0] + ".png"
W_PLOT_FILE_NAME = os.path.splitext(W_RESULT_FILE_NAME)[0] + ".png"
LOG_FILE_NAME = "run.log"

SEPARATOR = "=" * 44
SHORT_SEPARATOR = "=" * 28


@dataclass(frozen=True)
class MeasurementRow:
    """One dd run: free RAM (bytes) around it and the rate dd printed."""
    free_memory_before: int
    free_memory_after: int
    rate: str
    rate_units: str

    @property
    def rate_mbps(self) -> float:
        return rate_to_mbps(self.rate, self.rate_units)


@dataclass
class RunResults:
    write_rows: List[MeasurementRow] = field(default_factory=list)
    read_rows: List[MeasurementRow] = field(default_factory=list)


def format_header() -> str:
    return "%12s %12s %12s" % ("RAM before", "Ram after", "Rate")


def format_row(row: MeasurementRow) -> str:
    before_value, before_unit = eng_value(row.free_memory_before).split()
    after_value, after_unit = eng_value(row.free_memory_after).split()
    return "%9s %2s%9s%3s%9s %3s" % (
        before_value, before_unit, after_value, after_unit, row.rate, row.rate_units
    )


def format_table(rows: List[MeasurementRow]) -> List[str]:
    return [format_header()] + [format_row(row) for row in rows]


def rate_statistics(rows: List[MeasurementRow]) -> Optional[Dict[str, float]]:
    """Mean, standard deviation, min and max of the rates in MB/s."""
    if not rows:
        return None
    rates = np.array([row.rate_mbps for row in rows])
    return {
        "mean": float(np.mean(rates)),
        "std": float(np.std(rates)),
        "min": float(np.min(rates)),
        "max": float(np.max(rates)),
    }


@contextlib.contextmanager
def transcript(log_file: str) -> Iterator[logging.Logger]:
    """
    Logger that prints plain lines to stdout and to log_file at the same time.

    The log file is truncated and starts with the current date.
    """
    out = logging.getLogger(TRANSCRIPT_LOGGER)
    out.setLevel(logging.INFO)
    out.propagate = False

    formatter = logging.Formatter("%(message)s")
    file_handler = logging.FileHandler(log_file, mode="w")
    file_handler.setFormatter(formatter)
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    out.addHandler(file_handler)
    out.info(datetime.datetime.now().strftime("%a %b %d %H:%M:%S %Y"))
    out.addHandler(stream_handler)
    try:
        yield out
    finally:
        out.removeHandler(stream_handler)
        out.removeHandler(file_handler)
        file_handler.close()


def write_results(
    out: logging.Logger, title: str, rows: List[MeasurementRow], result_file: str
) -> None:
    """Print the raw table for one operation and save it to result_file."""
    table = format_table(rows)

    out.info(SHORT_SEPARATOR)
    out.info(f"{title} results:")
    out.info(SHORT_SEPARATOR)
    out.info("Raw values obtained:")
    with open(result_file, "w") as f:
        for line in table:
            f.write(line + "\n")
            out.info(line)

    out.info("Processed values (MB/s):")
    for row in rows:
        out.info(f"{row.rate_mbps:12.2f}")

    stats = rate_statistics(rows)
    if stats is not None:
        out.info(
            f"Mean: {stats['mean']:.2f}  Std: {stats['std']:.2f}  "
            f"Min: {stats['min']:.2f}  Max: {stats['max']:.2f} (MB/s)"
        )
    out.info(SHORT_SEPARATOR)


def render_plot(data_file: str, png_file: str) -> bool:
    """Plot a result file. Failures are logged and do not stop the run."""
    try:
        return plot_results(data_file, png_file)
    except Exception as e:
        logger.warning(f"Could not plot {data_file}: {e}")
        return False
