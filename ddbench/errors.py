"""Exceptions raised by the ddbench measurers.

Every failure the tools can report is a subclass of DDBenchError. The
command-line entry points catch DDBenchError, log the message and exit with
status 1; argparse handles unknown options on its own.
"""


class DDBenchError(Exception):
    """Base class for all ddbench errors."""


class UsageError(DDBenchError):
    """Invalid option value or option combination."""


class MissingArgumentError(UsageError):
    def __init__(self, what: str):
        super().__init__(f"{what} not defined!")
        self.what = what


class InvalidUnitError(DDBenchError):
    def __init__(self, unit: str):
        super().__init__(f"Invalid unit identified ({unit})!")
        self.unit = unit


class SizeTooSmallError(DDBenchError):
    pass


class DirectoryNotFoundError(DDBenchError):
    def __init__(self, path: str):
        super().__init__(f"Directory {path} does not exist!")
        self.path = path


class InsufficientPrivilegeError(DDBenchError):
    pass


class CopyToolError(DDBenchError):
    """dd exited with an error or printed a summary we cannot parse."""


class UnsupportedRateUnitError(CopyToolError):
    def __init__(self, unit: str):
        super().__init__(f"Unsupported rate unit reported by dd: {unit!r}")
        self.unit = unit


class ZeroElapsedTimeError(DDBenchError):
    pass


class NoTestFilesError(DDBenchError):
    pass


class MemoryInfoError(DDBenchError):
    """The free RAM could not be read from /proc/meminfo."""
