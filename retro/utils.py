"""Unit conversions and random helpers."""

import random
import re
from datetime import timedelta
from fractions import Fraction

from retro.types import TimeUnit

_WEI_PER_ETHER = 10**18
_WEI_PER_GWEI = 10**9
_PARSE_PRECISION = 256
_MIN_INT_PRECISION = 64
_DECIMAL = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def _round_binary(value: Fraction, bits: int) -> Fraction:
    """Round to the nearest binary float with the given mantissa bits, ties to even."""
    if value == 0:
        return value
    magnitude = abs(value)
    exponent = magnitude.numerator.bit_length() - magnitude.denominator.bit_length()
    if magnitude >= Fraction(2) ** exponent:
        exponent += 1
    scale = Fraction(2) ** (bits - exponent)
    rounded = round(magnitude * scale) / scale
    return -rounded if value < 0 else rounded


def _parse_decimal(text: str) -> Fraction:
    if not isinstance(text, str) or not _DECIMAL.fullmatch(text):
        raise ValueError(f"ошибка парсинга строки '{text}' в число")
    return _round_binary(Fraction(text), _PARSE_PRECISION)


def _to_units(amount: str, factor: int) -> int:
    scaled = _round_binary(_parse_decimal(amount) * factor, _PARSE_PRECISION)
    return int(scaled)


def _from_units(value, factor: int, decimals: int) -> str:
    if value is None:
        return "0"
    precision = max(_MIN_INT_PRECISION, abs(value).bit_length())
    quotient = _round_binary(Fraction(value, factor), precision)
    scaled = round(quotient * 10**decimals)
    sign = "-" if scaled < 0 else ""
    digits = str(abs(scaled)).rjust(decimals + 1, "0")
    text = f"{sign}{digits[:-decimals]}.{digits[-decimals:]}"
    return text.rstrip("0").rstrip(".")


def to_wei(amount):
    """Convert a decimal Ether amount to wei, truncating toward zero."""
    return _to_units(amount, _WEI_PER_ETHER)


def to_gwei(amount):
    """Convert a decimal amount to gwei units, truncating toward zero."""
    return _to_units(amount, _WEI_PER_GWEI)


def from_wei(wei):
    """Format a wei amount as a decimal Ether string without trailing zeros."""
    return _from_units(wei, _WEI_PER_ETHER, 18)


def from_gwei(gwei):
    """Format a gwei amount as a decimal string without trailing zeros."""
    return _from_units(gwei, _WEI_PER_GWEI, 9)


def random_int_in_range(low, high):
    """Return a random integer in [low, high]; the bounds may be given in either order."""
    if low > high:
        low, high = high, low
    return random.randint(low, high)


def random_duration(delay_range):
    """Return a random delay from a DelayRange; an empty unit means seconds."""
    value = random_int_in_range(delay_range.min, delay_range.max)
    match delay_range.unit:
        case TimeUnit.SECONDS | "":
            return timedelta(seconds=value)
        case TimeUnit.MINUTES:
            return timedelta(minutes=value)
        case unit:
            raise ValueError(f"unknown delay unit: {unit}")