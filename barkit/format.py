"""Human-friendly formatting of durations, byte sizes and counts."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Union

DurationLike = Union[timedelta, int, float]

_SECOND = timedelta(seconds=1)
_MINUTE = timedelta(minutes=1)
_HOUR = timedelta(hours=1)
_DAY = timedelta(days=1)
_WEEK = timedelta(weeks=1)
_YEAR = timedelta(days=365)

# (unit, singular name, short suffix), largest first.
_UNITS: tuple[tuple[timedelta, str, str], ...] = (
    (_YEAR, "year", "y"),
    (_WEEK, "week", "w"),
    (_DAY, "day", "d"),
    (_HOUR, "hour", "h"),
    (_MINUTE, "minute", "m"),
    (_SECOND, "second", "s"),
)

_BINARY_PREFIXES = ("Ki", "Mi", "Gi", "Ti", "Pi", "Ei", "Zi", "Yi")
_DECIMAL_PREFIXES = ("k", "M", "G", "T", "P", "E", "Z", "Y")


def _to_timedelta(value: DurationLike) -> timedelta:
    if isinstance(value, timedelta):
        duration = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        duration = timedelta(seconds=value)
    else:
        raise TypeError(f"expected a timedelta or a number of seconds, got {value!r}")
    if duration < timedelta(0):
        raise ValueError("durations must not be negative")
    return duration


def _check_unsigned(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected an integer, got {value!r}")
    if value < 0:
        raise ValueError("value must not be negative")
    return value


def _round_half_away(value: float) -> int:
    return int(math.floor(value + 0.5))


def _group_thousands(digits: str) -> str:
    """Insert a comma before every group of three characters counted from the right."""
    length = len(digits)
    parts = []
    for idx, char in enumerate(digits):
        parts.append(char)
        pos = length - idx - 1
        if pos > 0 and pos % 3 == 0:
            parts.append(",")
    return "".join(parts)


def _prefixed(amount: float, kilo: float, prefixes: tuple[str, ...]) -> str:
    if amount < kilo:
        return f"{amount:.0f}B"
    count = 0
    while amount >= kilo and count < len(prefixes):
        amount /= kilo
        count += 1
    return f"{amount:.2f} {prefixes[count - 1]}B"


class _Displayable:
    """Lets wrappers be used in f-strings with ordinary string format specs."""

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


@dataclass(frozen=True)
class FormattedDuration(_Displayable):
    """A duration shown as ``HH:MM:SS``, with a leading day count when needed."""

    duration: DurationLike

    def __post_init__(self) -> None:
        object.__setattr__(self, "duration", _to_timedelta(self.duration))

    def __str__(self) -> str:
        total = int(self.duration.total_seconds() // 1)
        rest, seconds = divmod(total, 60)
        rest, minutes = divmod(rest, 60)
        days, hours = divmod(rest, 24)
        clock = f"{hours:02}:{minutes:02}:{seconds:02}"
        return f"{days}d {clock}" if days > 0 else clock


@dataclass(frozen=True)
class HumanDuration:
    """A duration rounded to its most natural unit, such as ``3 minutes``.

    Formatting with the ``#`` flag gives the short form, such as ``3m``.
    """

    duration: DurationLike

    def __post_init__(self) -> None:
        object.__setattr__(self, "duration", _to_timedelta(self.duration))

    def _parts(self) -> tuple[int, str, str]:
        duration = self.duration
        chosen = len(_UNITS) - 1
        for idx, ((unit, _, _), (next_unit, _, _)) in enumerate(zip(_UNITS, _UNITS[1:])):
            if duration + next_unit / 2 >= unit + unit / 2:
                chosen = idx
                break
        unit, name, alt = _UNITS[chosen]
        count = _round_half_away(duration / unit)
        if chosen < len(_UNITS) - 1:
            count = max(count, 2)
        return count, name, alt

    def __str__(self) -> str:
        count, name, _ = self._parts()
        return f"{count} {name}" if count == 1 else f"{count} {name}s"

    def __format__(self, spec: str) -> str:
        if "#" in spec:
            count, _, alt = self._parts()
            text = f"{count}{alt}"
            spec = spec.replace("#", "")
        else:
            text = str(self)
        return format(text, spec)


@dataclass(frozen=True)
class HumanBytes(_Displayable):
    """A byte count with binary prefixes, such as ``3.00 MiB``."""

    value: int

    def __post_init__(self) -> None:
        _check_unsigned(self.value)

    def __str__(self) -> str:
        return _prefixed(float(self.value), 1024.0, _BINARY_PREFIXES)


@dataclass(frozen=True)
class DecimalBytes(_Displayable):
    """A byte count with SI prefixes, such as ``3.00 MB``."""

    value: int

    def __post_init__(self) -> None:
        _check_unsigned(self.value)

    def __str__(self) -> str:
        return _prefixed(float(self.value), 1000.0, _DECIMAL_PREFIXES)


@dataclass(frozen=True)
class BinaryBytes(_Displayable):
    """A byte count with ISO/IEC binary prefixes, such as ``3.00 MiB``."""

    value: int

    def __post_init__(self) -> None:
        _check_unsigned(self.value)

    def __str__(self) -> str:
        return _prefixed(float(self.value), 1024.0, _BINARY_PREFIXES)


@dataclass(frozen=True)
class HumanCount(_Displayable):
    """An integer count with thousands separators, such as ``1,234``."""

    value: int

    def __post_init__(self) -> None:
        _check_unsigned(self.value)

    def __str__(self) -> str:
        return _group_thousands(str(self.value))


@dataclass(frozen=True)
class HumanFloatCount(_Displayable):
    """A float count with thousands separators and up to four decimals."""

    value: float

    def __str__(self) -> str:
        value = float(self.value)
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "inf" if value > 0 else "-inf"
        int_part, _, frac_part = f"{value:.4f}".partition(".")
        text = _group_thousands(int_part)
        frac_trimmed = frac_part.rstrip("0")
        if frac_trimmed:
            text += "." + frac_trimmed
        return text