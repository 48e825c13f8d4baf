import shutil

import pytest

from ddbench import dd
from ddbench.errors import CopyToolError


@pytest.mark.parametrize("output,expected", [
    (
        "2+0 records in\n2+0 records out\n32768 bytes (33 kB, 32 KiB) copied, 0.000213 s, 154 MB/s\n",
        dd.CopySummary(32768, "154", "MB/s"),
    ),
    (
        "1024+0 records in\n1024+0 records out\n"
        "16777216 bytes (17 MB) copied, 0.0121 s, 1.4 GB/s\n",
        dd.CopySummary(16777216, "1.4", "GB/s"),
    ),
    (
        "0+0 records in\n0+0 records out\n0 bytes copied, 5.2e-05 s, 0.0 kB/s\n\n",
        dd.CopySummary(0, "0.0", "kB/s"),
    ),
])
def test_parse_summary(output, expected):
    assert dd.parse_summary(output) == expected


@pytest.mark.parametrize("output", [
    "",
    "dd: failed to open 'x': No such file or directory\n",
    "16384 bytes (16.0KB) copied\n",
])
def test_parse_summary_rejects_garbage(output):
    with pytest.raises(CopyToolError):
        dd.parse_summary(output)


def test_dd_command():
    assert dd.dd_command("/dev/zero", "/tmp/f", count=4, extra_args=["oflag=direct"]) == [
        dd.DD_BIN, "if=/dev/zero", "of=/tmp/f", "bs=16384", "count=4", "oflag=direct",
    ]
    assert dd.dd_command("/tmp/f", "/dev/null") == [dd.DD_BIN, "if=/tmp/f", "of=/dev/null", "bs=16384"]


def test_run_dd_missing_binary(monkeypatch, tmp_path):
    monkeypatch.setattr(dd, "DD_BIN", str(tmp_path / "no-such-dd"))
    with pytest.raises(CopyToolError, match="not found"):
        dd.run_dd("/dev/zero", str(tmp_path / "out"), count=1)


@pytest.mark.skipif(shutil.which("dd") is None, reason="dd not installed")
def test_write_and_read_file(tmp_path):
    path = str(tmp_path / "tempfile")

    written = dd.write_file(path, count=3)
    assert written.nbytes == 3 * 16384
    assert (tmp_path / "tempfile").stat().st_size == 3 * 16384

    read = dd.read_file(path)
    assert read.nbytes == 3 * 16384
    assert read.rate_units.endswith("/s")


@pytest.mark.skipif(shutil.which("dd") is None, reason="dd not installed")
def test_run_dd_failure(tmp_path):
    with pytest.raises(CopyToolError, match="failed"):
        dd.read_file(str(tmp_path / "missing"))


class InterruptedPopen:
    """Stands in for subprocess.Popen; communicate() is interrupted."""

    instances = []

    def __init__(self, command, **kwargs):
        self.command = command
        self.killed = False
        self.waited = False
        self.closed = False
        InterruptedPopen.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True

    def communicate(self):
        raise KeyboardInterrupt

    def kill(self):
        self.killed = True

    def wait(self):
        self.waited = True


def test_run_dd_kills_child_when_interrupted(monkeypatch, tmp_path):
    InterruptedPopen.instances.clear()
    monkeypatch.setattr(dd.subprocess, "Popen", InterruptedPopen)

    with pytest.raises(KeyboardInterrupt):
        dd.run_dd("/dev/zero", str(tmp_path / "out"), count=1)

    [process] = InterruptedPopen.instances
    assert process.killed
    assert process.waited
    assert process.closed
