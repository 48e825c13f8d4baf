import os

import pytest

from ddbench.dd import ZERO_SOURCE, CopySummary
from ddbench.units import BLOCK_SIZE


class FakeDD:
    """Stands in for ddbench.dd.run_dd and records every call."""

    def __init__(self, rate="1.5", rate_units="GB/s"):
        self.rate = rate
        self.rate_units = rate_units
        self.calls = []

    def __call__(self, source, target, block_size=BLOCK_SIZE, count=None, extra_args=None):
        operation = "write" if source == ZERO_SOURCE else "read"
        self.calls.append({
            "operation": operation,
            "source": source,
            "target": target,
            "count": count,
            "extra_args": list(extra_args or []),
            "target_existed": os.path.exists(target),
        })
        if operation == "write":
            with open(target, "wb") as f:
                f.truncate(block_size * count)
            nbytes = block_size * count
        else:
            nbytes = os.path.getsize(source)
        return CopySummary(nbytes=nbytes, rate=self.rate, rate_units=self.rate_units)

    def operations(self):
        return [call["operation"] for call in self.calls]


@pytest.fixture
def fake_dd():
    return FakeDD()


@pytest.fixture
def meminfo(tmp_path):
    path = tmp_path / "meminfo"
    path.write_text(
        "MemTotal:       16318480 kB\n"
        "MemFree:         8388608 kB\n"
        "MemAvailable:   12000000 kB\n"
    )
    return str(path)
