"""Odds parsing, each-way place prices and player name normalization."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import NamedTuple, Optional, Union

from config import DEFAULT_EACH_WAY_FRACTION, DEFAULT_EACH_WAY_PLACES

_EVENS = {"evs", "evens", "even"}
_FRACTION_RE = re.compile(r"(\d+)\s*/\s*(\d+)")
_PLACES_LIST_RE = re.compile(r"places?\s+(\d+(?:\s*-\s*\d+)*)", re.IGNORECASE)
_PLACES_COUNT_RE = re.compile(r"(\d+)\s*places?", re.IGNORECASE)


class OddsParseError(ValueError):
    """Raised when an odds string cannot be turned into a decimal price."""


def normalize_name(label: str) -> str:
    """Return the matching key for a player label.

    Trims, collapses internal whitespace and case-folds. Blank labels map to
    the empty string, which callers must treat as "no identity".
    """
    if not isinstance(label, str):
        return ""
    return " ".join(label.split()).casefold()


def _split_fraction(value: str) -> tuple[int, int]:
    parts = value.split("/")
    if len(parts) != 2:
        raise OddsParseError(f"Not a fraction: {value!r}")
    try:
        numerator = int(parts[0].strip())
        denominator = int(parts[1].strip())
    except ValueError as exc:
        raise OddsParseError(f"Not a fraction: {value!r}") from exc
    if numerator <= 0 or denominator <= 0:
        raise OddsParseError(f"Fraction parts must be positive: {value!r}")
    return numerator, denominator


def to_decimal(value: Union[str, float, int]) -> float:
    """Convert fractional ("7/2"), evens ("EVS") or decimal odds to a decimal price."""
    if isinstance(value, bool):
        raise OddsParseError(f"Invalid odds: {value!r}")
    if isinstance(value, (int, float)):
        price = float(value)
    else:
        raw = str(value or "").strip()
        if not raw:
            raise OddsParseError("Empty odds string")
        if raw.lower() in _EVENS:
            return 2.0
        if "/" in raw:
            numerator, denominator = _split_fraction(raw)
            return numerator / denominator + 1.0
        try:
            price = float(raw)
        except ValueError as exc:
            raise OddsParseError(f"Invalid odds: {value!r}") from exc
    if not math.isfinite(price) or price < 1.0:
        raise OddsParseError(f"Decimal odds must be finite and >= 1.0, got {value!r}")
    return price


@dataclass(frozen=True)
class EachWayTerms:
    """Bookmaker each-way rule: the place leg pays ``fraction`` of the win odds
    for a finish inside the top ``places``."""

    fraction_numerator: int
    fraction_denominator: int
    places: int

    def __post_init__(self) -> None:
        if self.fraction_numerator <= 0 or self.fraction_denominator <= 0:
            raise OddsParseError("Each-way fraction parts must be positive")
        if self.places < 1:
            raise OddsParseError(f"Each-way places must be >= 1, got {self.places}")

    @classmethod
    def parse(cls, fraction: str, places: int) -> "EachWayTerms":
        numerator, denominator = _split_fraction(str(fraction or ""))
        try:
            places_value = int(places)
        except (TypeError, ValueError) as exc:
            raise OddsParseError(f"Invalid each-way places: {places!r}") from exc
        return cls(numerator, denominator, places_value)

    @property
    def fraction(self) -> str:
        return f"{self.fraction_numerator}/{self.fraction_denominator}"

    @property
    def fraction_value(self) -> float:
        return self.fraction_numerator / self.fraction_denominator

    def __str__(self) -> str:
        return f"{self.fraction} odds, {self.places} places"


DEFAULT_EACH_WAY_TERMS = EachWayTerms.parse(DEFAULT_EACH_WAY_FRACTION, DEFAULT_EACH_WAY_PLACES)


class PlacePrice(NamedTuple):
    fractional: str
    price: float


def derive_place_price(win_fractional: str, terms: EachWayTerms) -> PlacePrice:
    """Return the place leg odds for fractional win odds under ``terms``.

    With 10/1 win odds and 1/4 terms the place leg is 10/4, reduced to 5/2,
    which is 3.5 in decimal.
    """
    raw = str(win_fractional or "").strip()
    if raw.lower() in _EVENS:
        raw = "1/1"
    if "/" not in raw:
        raise OddsParseError(f"Place odds need fractional win odds, got {win_fractional!r}")
    win_numerator, win_denominator = _split_fraction(raw)
    numerator = win_numerator * terms.fraction_numerator
    denominator = win_denominator * terms.fraction_denominator
    divisor = math.gcd(numerator, denominator)
    numerator //= divisor
    denominator //= divisor
    return PlacePrice(f"{numerator}/{denominator}", numerator / denominator + 1.0)


def parse_each_way_terms(text: str) -> Optional[EachWayTerms]:
    """Read each-way terms from bookmaker board text.

    Understands both "EW 1/5 Places 1-2-3-4-5" and "1/4 odds, 8 places".
    """
    if not text:
        return None
    fraction_match = _FRACTION_RE.search(text)
    if not fraction_match:
        return None
    places_match = _PLACES_LIST_RE.search(text)
    if places_match:
        places = len(places_match.group(1).split("-"))
    else:
        count_match = _PLACES_COUNT_RE.search(text)
        if not count_match:
            return None
        places = int(count_match.group(1))
    try:
        return EachWayTerms(int(fraction_match.group(1)), int(fraction_match.group(2)), places)
    except OddsParseError:
        return None
