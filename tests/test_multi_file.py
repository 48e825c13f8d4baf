import os
import shutil

import pytest

from ddbench import multi_file
from ddbench.dd import CopySummary
from ddbench.errors import (
    DirectoryNotFoundError,
    MissingArgumentError,
    NoTestFilesError,
    ZeroElapsedTimeError,
)
from ddbench.multi_file import Mode, MultiFileConfig, ReadSummary
from ddbench.units import parse_size


def parse(argv):
    return multi_file.build_parser().parse_args(argv)


def make_files(directory, names, size=16384):
    for name in names:
        with open(os.path.join(str(directory), name), "wb") as f:
            f.truncate(size)


def test_build_config_modes(tmp_path):
    assert multi_file.build_config(parse(["-d", str(tmp_path)])).mode is Mode.READ
    assert multi_file.build_config(parse(["-d", str(tmp_path), "-c"])).mode is Mode.CLEAN

    config = multi_file.build_config(parse(["-d", str(tmp_path), "-w", "-n", "3", "-s", "20k"]))
    assert config.mode is Mode.WRITE
    assert config.num_files == 3
    assert config.size.nbytes == 32768


@pytest.mark.parametrize("argv,what", [
    ([], "Test directory"),
    (["-d", ".", "-w", "-s", "1M"], "Number of files"),
    (["-d", ".", "-w", "-n", "2"], "File size"),
])
def test_build_config_missing_argument(argv, what):
    with pytest.raises(MissingArgumentError) as excinfo:
        multi_file.build_config(parse(argv))
    assert excinfo.value.what == what


def test_build_config_missing_directory(tmp_path):
    with pytest.raises(DirectoryNotFoundError):
        multi_file.build_config(parse(["-d", str(tmp_path / "nope")]))


def test_clean_mode_skips_size_parsing(tmp_path):
    config = multi_file.build_config(parse(["-d", str(tmp_path), "-c", "-w", "-n", "1", "-s", "bogus"]))
    assert config.mode is Mode.CLEAN
    assert config.size is None


def test_clean_removes_only_test_files(tmp_path):
    make_files(tmp_path, ["tempfile_1", "tempfile_2", "tempfile_10", "tempfile", "other", "my_tempfile_1"])
    (tmp_path / "tempfile_dir").mkdir()
    (tmp_path / "tempfile_dir" / "inner").write_text("x")
    (tmp_path / "keep").mkdir()
    make_files(tmp_path / "keep", ["tempfile_1"])

    removed = multi_file.clean_files(str(tmp_path))

    assert removed == 4
    assert sorted(os.listdir(str(tmp_path))) == ["keep", "my_tempfile_1", "other", "tempfile"]
    assert os.listdir(str(tmp_path / "keep")) == ["tempfile_1"]


def test_find_test_files(tmp_path):
    make_files(tmp_path, ["tempfile_2", "tempfile_1", "tempfile", "notes"])
    (tmp_path / "tempfile_3").mkdir()

    found = multi_file.find_test_files(str(tmp_path))
    assert [os.path.basename(path) for path in found] == ["tempfile_1", "tempfile_2"]


def test_write_files_uses_numbered_names(tmp_path):
    calls = []

    def fake_write(path, count):
        calls.append((os.path.basename(path), count))
        return CopySummary(count * 16384, "1.0", "GB/s")

    config = MultiFileConfig(test_dir=str(tmp_path), mode=Mode.WRITE, num_files=3, size=parse_size("1M"))
    multi_file.write_files(config, write_file=fake_write)

    assert calls == [("tempfile_1", 64), ("tempfile_2", 64), ("tempfile_3", 64)]


@pytest.mark.skipif(shutil.which("dd") is None, reason="dd not installed")
def test_write_mode_creates_files(tmp_path):
    config = multi_file.build_config(parse(["-d", str(tmp_path), "-w", "-n", "3", "-s", "20k"]))
    multi_file.run(config)

    assert sorted(os.listdir(str(tmp_path))) == ["tempfile_1", "tempfile_2", "tempfile_3"]
    for name in os.listdir(str(tmp_path)):
        assert os.path.getsize(str(tmp_path / name)) == 32768


@pytest.mark.skipif(shutil.which("dd") is None, reason="dd not installed")
def test_read_files_with_dd(tmp_path):
    make_files(tmp_path, ["tempfile_1", "tempfile_2"], size=3 * 16384)

    summary = multi_file.read_files(str(tmp_path))

    assert summary.num_files == 2
    assert summary.total_bytes == 6 * 16384


def test_read_files_sums_bytes(tmp_path):
    make_files(tmp_path, ["tempfile_1", "tempfile_2", "tempfile_3"])
    ticks = iter([100.0, 104.0])

    def fake_read(path):
        return CopySummary(1000, "1.0", "MB/s")

    summary = multi_file.read_files(str(tmp_path), read_file=fake_read, clock=lambda: next(ticks))

    assert summary == ReadSummary(num_files=3, total_bytes=3000, elapsed=4.0)
    assert summary.rate == 750.0


def test_read_files_zero_elapsed(tmp_path):
    make_files(tmp_path, ["tempfile_1"])

    summary = multi_file.read_files(
        str(tmp_path), read_file=lambda path: CopySummary(16384, "1.0", "GB/s"), clock=lambda: 5.0
    )
    with pytest.raises(ZeroElapsedTimeError):
        summary.rate


def test_read_files_nothing_found(tmp_path):
    make_files(tmp_path, ["tempfile"])
    with pytest.raises(NoTestFilesError):
        multi_file.read_files(str(tmp_path))


def test_write_summary_labels(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(multi_file, "write_files", lambda config: [])
    config = MultiFileConfig(test_dir=str(tmp_path), mode=Mode.WRITE, num_files=3, size=parse_size("1M"))

    multi_file.run(config)

    out = capsys.readouterr().out
    assert "Number of files : 3" in out
    assert "Size of files   : 1.00 MB" in out


def test_read_summary_output(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(
        multi_file, "read_files", lambda test_dir: ReadSummary(num_files=2, total_bytes=2 * 1048576, elapsed=2.0)
    )

    multi_file.run(MultiFileConfig(test_dir=str(tmp_path)))

    out = capsys.readouterr().out
    assert "Number of files found : 2" in out
    assert "Total size transferred: 2.00 MB" in out
    assert "Average total rate    : 1.00 MB/s" in out


def test_main_clean(tmp_path, capsys):
    make_files(tmp_path, ["tempfile_1", "tempfile_2", "other"])
    multi_file.main(["-d", str(tmp_path), "-c"])
    assert os.listdir(str(tmp_path)) == ["other"]


def test_main_read_without_files(tmp_path, caplog):
    with pytest.raises(SystemExit) as excinfo:
        multi_file.main(["-d", str(tmp_path)])
    assert excinfo.value.code == 1
    assert "No 'tempfile_*' files found" in caplog.text
