"""Parse the physical marker size embedded in a QR payload.

Payloads follow ``<decimal-number><unit>-<identifier>``, for example
``"12.0in-FKDJL"`` (0.3048 m, identifier ``"FKDJL"``). Unit tokens are matched
case-insensitively and the leftmost token in the payload wins.
"""

from __future__ import annotations

import math
import re
import string
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional


UNIT_FACTORS: Mapping[str, float] = MappingProxyType(
    {
        "m-": 1.0,
        "cm-": 0.01,
        "mm-": 0.001,
        "ft-": 0.3048,
        "in-": 0.0254,
    }
)

_NUMBER_RE = re.compile(r"\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

# ASCII-only lowering keeps indices aligned with the original payload.
_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


@dataclass(frozen=True)
class ParsedMarkerLabel:
    size_m: float
    identifier: str


def _find_unit(lowered: str) -> Optional[tuple[int, str]]:
    best: Optional[tuple[int, str]] = None
    for token in UNIT_FACTORS:
        idx = lowered.find(token)
        if idx < 0:
            continue
        if best is None or idx < best[0]:
            best = (idx, token)
    return best


def _parse_number(text: str) -> Optional[float]:
    # Leading decimal only; anything after it is ignored.
    match = _NUMBER_RE.match(text)
    if match is None:
        return None
    value = float(match.group())
    if not math.isfinite(value):
        return None
    return value


def parse_dimension(payload: str) -> Optional[ParsedMarkerLabel]:
    """
    Extract the marker size (meters) and identifier from a QR payload.

    Args:
        payload: Decoded QR text, e.g. ``"12.3mm-tester"``

    Returns:
        ParsedMarkerLabel, or None if no unit token is present or the text
        before the leftmost token does not start with a decimal number. The
        size is not checked for positivity here.
    """
    if not payload:
        return None

    found = _find_unit(payload.translate(_ASCII_LOWER))
    if found is None:
        return None
    start, token = found

    number = _parse_number(payload[:start])
    if number is None:
        return None

    return ParsedMarkerLabel(
        size_m=number * UNIT_FACTORS[token],
        identifier=payload[start + len(token):],
    )
