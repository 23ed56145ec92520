"""Parsing of Kubernetes resource quantities such as "250m", "1.5Gi" or "2e3"."""

from __future__ import annotations

import math
import re
from decimal import Decimal
from fractions import Fraction

_SUFFIXES: dict[str, Fraction] = {
    "": Fraction(1),
    "n": Fraction(1, 10**9),
    "u": Fraction(1, 10**6),
    "m": Fraction(1, 10**3),
    "k": Fraction(10**3),
    "M": Fraction(10**6),
    "G": Fraction(10**9),
    "T": Fraction(10**12),
    "P": Fraction(10**15),
    "E": Fraction(10**18),
    "Ki": Fraction(2**10),
    "Mi": Fraction(2**20),
    "Gi": Fraction(2**30),
    "Ti": Fraction(2**40),
    "Pi": Fraction(2**50),
    "Ei": Fraction(2**60),
}

_QUANTITY = re.compile(r"([+-]?)(\d+(?:\.\d*)?|\.\d+)(.*)")
_EXPONENT = re.compile(r"[eE]([+-]?\d+)")


def parse_quantity(text: str | int | float) -> Fraction:
    """Parse a quantity into its exact value.

    Accepts a signed decimal number followed by a decimal suffix (n, u, m, k,
    M, G, T, P, E), a binary suffix (Ki to Ei) or a decimal exponent (e3).
    Raises ValueError when the text is not a quantity.
    """
    if isinstance(text, bool):
        raise ValueError(f"not a quantity: {text!r}")
    if isinstance(text, int):
        return Fraction(text)
    if isinstance(text, float):
        if not math.isfinite(text):
            raise ValueError(f"not a quantity: {text!r}")
        return Fraction(Decimal(repr(text)))
    match = _QUANTITY.fullmatch(text)
    if match is None:
        raise ValueError(f"quantities must match the regular expression: {text!r}")
    sign, number, suffix = match.groups()
    if suffix in _SUFFIXES:
        multiplier = _SUFFIXES[suffix]
    else:
        exponent = _EXPONENT.fullmatch(suffix)
        if exponent is None:
            raise ValueError(f"unable to parse quantity's suffix: {text!r}")
        multiplier = Fraction(10) ** int(exponent.group(1))
    value = Fraction(Decimal(number)) * multiplier
    return -value if sign == "-" else value


def milli_value(text: str | int | float | None) -> int:
    """Return the quantity in thousandths, rounded away from zero; a missing one is 0."""
    if text is None or text == "":
        return 0
    scaled = parse_quantity(text) * 1000
    magnitude = math.ceil(abs(scaled))
    return -magnitude if scaled < 0 else magnitude