import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from ddbench.errors import InvalidUnitError, SizeTooSmallError, UnsupportedRateUnitError

logger = logging.getLogger(__name__)

# Number of bytes per dd block ('bs' argument)
BLOCK_SIZE = 16 * 1024

# Units used when printing byte values, one per block of 1024
ENG_UNITS = ["B", "kB", "MB", "GB"]

# dd reports rates in SI units; factors convert them to MB/s
RATE_FACTORS = {
    "B/s": 1e-6,
    "kB/s": 1e-3,
    "MB/s": 1.0,
    "GB/s": 1e3,
    "TB/s": 1e6,
}

_SIZE_PATTERN = re.compile(r"^(\d+)(.*)$")


class SizeUnit(Enum):
    BYTES = ("B", 1)
    KILO = ("k", 1024)
    MEGA = ("M", 1024 * 1024)
    GIGA = ("G", 1024 * 1024 * 1024)

    def __init__(self, suffix: str, multiplier: int):
        self.suffix = suffix
        self.multiplier = multiplier

    @classmethod
    def from_suffix(cls, suffix: str) -> "SizeUnit":
        """Map a size suffix to its unit. An empty suffix means kilo."""
        if suffix == "":
            return cls.KILO
        for unit in cls:
            if unit.suffix == suffix:
                return unit
        raise InvalidUnitError(suffix)


@dataclass(frozen=True)
class ByteSize:
    """A file size aligned to BLOCK_SIZE."""
    requested: int
    nbytes: int

    @property
    def count(self) -> int:
        """Number of BLOCK_SIZE blocks ('count' argument of dd)."""
        return self.nbytes // BLOCK_SIZE

    @property
    def adjusted(self) -> bool:
        return self.requested != self.nbytes


def round_up_to_block(nbytes: int, block_size: int = BLOCK_SIZE) -> int:
    remainder = nbytes % block_size
    if remainder == 0:
        return nbytes
    return (nbytes // block_size + 1) * block_size


def split_size(size: str) -> Tuple[int, str]:
    """Split '2G' into (2, 'G').

    Anything that is not digits followed by a suffix is returned whole as the
    suffix, so that the error message names what the user typed.
    """
    match = _SIZE_PATTERN.match(size)
    if not match:
        return 0, size
    return int(match.group(1)), match.group(2)


def parse_size(size: str) -> ByteSize:
    """
    Convert a size string such as '512', '16k', '1M' or '2G' to a ByteSize.

    The number is multiplied by the unit (k when omitted) and rounded up to
    the next multiple of BLOCK_SIZE.

    Raises:
        InvalidUnitError: the suffix is not one of B, k, M, G
        SizeTooSmallError: the size converts to zero bytes
    """
    value, suffix = split_size(size)
    unit = SizeUnit.from_suffix(suffix)
    requested = value * unit.multiplier

    if requested <= 0:
        raise SizeTooSmallError(f"File size must be at least {BLOCK_SIZE // 1024}kB")

    size = ByteSize(requested=requested, nbytes=round_up_to_block(requested))
    if size.adjusted:
        logger.info(f"Adjusting size from {size.requested} to {size.nbytes} bytes")

    return size


def eng_value(value: int) -> str:
    """
    Express a byte count in B, kB, MB or GB, e.g. 16384 -> '16.00 kB'.

    The unit index comes from the number of decimal digits, one step per
    three digits, and the value is divided by 1024 per step. Hundredths are
    truncated, not rounded.
    """
    value = int(value)
    index = min((len(str(abs(value))) - 1) // 3, len(ENG_UNITS) - 1)
    factor = 1024 ** index
    hundredths = 100 * value // factor
    return f"{hundredths // 100}.{hundredths % 100:02d} {ENG_UNITS[index]}"


def eng_to_bytes(value: float, unit: str) -> float:
    """Inverse of eng_value for plotting: ('7.50', 'GB') -> bytes."""
    if unit not in ENG_UNITS:
        raise ValueError(f"Unknown memory unit: {unit}")
    return float(value) * 1024 ** ENG_UNITS.index(unit)


def rate_to_mbps(rate: str, units: str) -> float:
    """Normalize a dd rate such as ('1.2', 'GB/s') to MB/s."""
    if units not in RATE_FACTORS:
        raise UnsupportedRateUnitError(units)
    return float(rate) * RATE_FACTORS[units]
