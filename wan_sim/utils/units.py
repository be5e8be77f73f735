"""Parsing of data rates and time values.

Link attributes can be given either as plain numbers (bits per second and
seconds) or as strings such as "5Mbps" and "2ms".
"""

import re
from typing import Union

_NUMBER = re.compile(r"^\s*([0-9]*\.?[0-9]+(?:[eE][-+]?[0-9]+)?)\s*([A-Za-z]*)\s*$")

_RATE_UNITS = {
    "bps": 1.0,
    "b/s": 1.0,
    "kbps": 1e3,
    "mbps": 1e6,
    "gbps": 1e9,
}

_TIME_UNITS = {
    "": 1.0,
    "s": 1.0,
    "ms": 1e-3,
    "us": 1e-6,
    "ns": 1e-9,
}


def _split(value: str) -> "tuple[float, str]":
    match = _NUMBER.match(value)
    if match is None:
        raise ValueError(f"Cannot parse quantity: {value!r}")
    return float(match.group(1)), match.group(2).lower()


def parse_rate(value: Union[str, float, int]) -> float:
    """Convert a data rate into bits per second.

    Args:
        value: Number of bits per second or a string like "5Mbps".

    Returns:
        Rate in bits per second.
    """
    if isinstance(value, (int, float)):
        rate = float(value)
    else:
        number, unit = _split(value)
        if unit not in _RATE_UNITS:
            raise ValueError(f"Unknown data rate unit in {value!r}")
        rate = number * _RATE_UNITS[unit]
    if rate <= 0:
        raise ValueError(f"Data rate must be positive, got {value!r}")
    return rate


def parse_time(value: Union[str, float, int]) -> float:
    """Convert a time value into seconds.

    Args:
        value: Number of seconds or a string like "2ms".

    Returns:
        Time in seconds.
    """
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        number, unit = _split(value)
        if unit not in _TIME_UNITS:
            raise ValueError(f"Unknown time unit in {value!r}")
        seconds = number * _TIME_UNITS[unit]
    if seconds < 0:
        raise ValueError(f"Time must be non-negative, got {value!r}")
    return seconds


def format_rate(rate: float) -> str:
    """Render a rate in bits per second the way it is usually written."""
    for unit, scale in (("Gbps", 1e9), ("Mbps", 1e6), ("kbps", 1e3)):
        if rate >= scale:
            return f"{rate / scale:g}{unit}"
    return f"{rate:g}bps"


def format_time(seconds: float) -> str:
    """Render a duration in seconds using ms/us when shorter than a second."""
    if seconds == 0 or seconds >= 1:
        return f"{seconds:g}s"
    if seconds >= 1e-3:
        return f"{seconds * 1e3:g}ms"
    return f"{seconds * 1e6:g}us"
