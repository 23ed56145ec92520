"""Parsing of duration strings such as "1h30m" or "2.5s"."""

from __future__ import annotations

import re
from datetime import timedelta
from fractions import Fraction

_NANOS_PER_UNIT = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_NUMBER = re.compile(r"(\d*)(?:\.(\d*))?")
_MAX_NANOS = 2**63 - 1
_NUMERIC_CHARS = frozenset("0123456789.")


def parse_duration(text: str) -> timedelta:
    """Parse a signed sequence of decimal numbers with units into a timedelta.

    Valid units are "ns", "us" (or "µs"), "ms", "s", "m" and "h". The result
    has microsecond resolution; smaller fractions are dropped.
    """
    original = text
    sign = 1
    if text and text[0] in "+-":
        if text[0] == "-":
            sign = -1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f'time: invalid duration "{original}"')

    total = Fraction(0)
    pos = 0
    while pos < len(text):
        match = _NUMBER.match(text, pos)
        whole, fraction = match.group(1), match.group(2)
        if not whole and not fraction:
            raise ValueError(f'time: invalid duration "{original}"')
        value = Fraction(int(whole or "0"))
        if fraction:
            value += Fraction(int(fraction), 10 ** len(fraction))
        pos = match.end()

        unit_end = pos
        while unit_end < len(text) and text[unit_end] not in _NUMERIC_CHARS:
            unit_end += 1
        unit = text[pos:unit_end]
        if not unit:
            raise ValueError(f'time: missing unit in duration "{original}"')
        if unit not in _NANOS_PER_UNIT:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{original}"')
        total += value * _NANOS_PER_UNIT[unit]
        pos = unit_end

    nanos = int(total)
    limit = _MAX_NANOS + 1 if sign < 0 else _MAX_NANOS
    if nanos > limit:
        raise ValueError(f'time: invalid duration "{original}"')
    return timedelta(microseconds=sign * (nanos // 1000))