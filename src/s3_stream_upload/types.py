import re

# Same unit table as go-humanize: SI suffixes are decimal, IEC suffixes binary.
_BYTE_UNITS: dict[str, int] = {
    "": 1,
    "b": 1,
    "k": 1000,
    "kb": 1000,
    "ki": 1024,
    "kib": 1024,
    "m": 1000**2,
    "mb": 1000**2,
    "mi": 1024**2,
    "mib": 1024**2,
    "g": 1000**3,
    "gb": 1000**3,
    "gi": 1024**3,
    "gib": 1024**3,
    "t": 1000**4,
    "tb": 1000**4,
    "ti": 1024**4,
    "tib": 1024**4,
    "p": 1000**5,
    "pb": 1000**5,
    "pi": 1024**5,
    "pib": 1024**5,
}

_PATTERN_BYTES = re.compile(r"^(\d[\d,]*(?:\.\d+)?)\s*([A-Za-z]*)$")


def parse_bytes(value: str) -> int:
    """Parse a human size such as "50MB", "50 MB", "5MiB" or "12345".

    "MB" is 1000 * 1000 bytes and "MiB" is 1024 * 1024 bytes.
    """
    match = _PATTERN_BYTES.match(value.strip())
    if match is None:
        raise ValueError(f"Invalid size: {value!r}")
    num_str, suffix = match.group(1), match.group(2)
    multiplier = _BYTE_UNITS.get(suffix.lower())
    if multiplier is None:
        raise ValueError(f"Invalid size suffix: {suffix!r} in {value!r}")
    n = float(num_str.replace(",", ""))
    return int(n * multiplier)


def _to_size_suffix(size: int) -> str:
    def _convert(size: int) -> tuple[float, str]:
        val: float
        unit: str
        if size < 1024:
            val = size
            unit = "B"
        elif size < 1024**2:
            val = size / 1024
            unit = "KiB"
        elif size < 1024**3:
            val = size / (1024**2)
            unit = "MiB"
        elif size < 1024**4:
            val = size / (1024**3)
            unit = "GiB"
        elif size < 1024**5:
            val = size / (1024**4)
            unit = "TiB"
        elif size < 1024**6:
            val = size / (1024**5)
            unit = "PiB"
        else:
            raise ValueError(f"Invalid size: {size}")

        return val, unit

    def _fmt(_val: float | int, _unit: str) -> str:
        # Whole numbers drop the decimal, everything else keeps one digit.
        first_str: str = f"{_val:.1f}"
        if first_str.endswith(".0"):
            first_str = first_str[:-2]
        return first_str + _unit

    if size < 0:
        return "-" + _to_size_suffix(-size)
    val, unit = _convert(size)
    out = _fmt(val, unit)
    # Round trip once so that 1MiB - 1 renders as 1MiB instead of 1024KiB.
    int_val = parse_bytes(out)
    val, unit = _convert(int_val)
    out = _fmt(val, unit)
    return out


class SizeSuffix:
    def __init__(self, size: "int | str | SizeSuffix"):
        self._size: int
        if isinstance(size, SizeSuffix):
            self._size = size._size
        elif isinstance(size, bool):
            raise ValueError(f"Invalid type for size: {type(size)}")
        elif isinstance(size, int):
            self._size = size
        elif isinstance(size, str):
            self._size = parse_bytes(size)
        elif isinstance(size, float):
            self._size = int(size)
        else:
            raise ValueError(f"Invalid type for size: {type(size)}")

    def as_int(self) -> int:
        return self._size

    def as_str(self) -> str:
        return _to_size_suffix(self._size)

    def __repr__(self) -> str:
        return self.as_str()

    def __str__(self) -> str:
        return self.as_str()

    def __add__(self, other: "int | SizeSuffix") -> "SizeSuffix":
        other_int = SizeSuffix(other)
        return SizeSuffix(self._size + other_int._size)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, (SizeSuffix, int)):
            return False
        return self._size == SizeSuffix(other)._size

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    def __lt__(self, other: "int | SizeSuffix") -> bool:
        return self._size < SizeSuffix(other)._size

    def __le__(self, other: "int | SizeSuffix") -> bool:
        return self._size <= SizeSuffix(other)._size

    def __gt__(self, other: "int | SizeSuffix") -> bool:
        return self._size > SizeSuffix(other)._size

    def __ge__(self, other: "int | SizeSuffix") -> bool:
        return self._size >= SizeSuffix(other)._size

    def __hash__(self) -> int:
        return hash(self._size)

    def __int__(self) -> int:
        return self._size
