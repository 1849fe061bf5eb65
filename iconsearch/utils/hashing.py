"""Deterministic 32-bit string hashing.

Values match the browser implementation that shares the vector cache, so the
arithmetic wraps to signed 32 bits and iterates UTF-16 code units.
"""

import math


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def utf16_units(text: str) -> list[int]:
    """Return the UTF-16 code units of ``text``."""
    data = text.encode("utf-16-le", errors="surrogatepass")
    return [int.from_bytes(data[i : i + 2], "little") for i in range(0, len(data), 2)]


def rolling_hash_units(units: list[int]) -> int:
    """Signed 32-bit ``h * 31 + unit`` hash over code units."""
    value = 0
    for unit in units:
        value = _to_int32((value << 5) - value + unit)
    return value


def rolling_hash(text: str) -> int:
    """Signed 32-bit rolling hash of a string."""
    return rolling_hash_units(utf16_units(text))


def generate_hash(text: str) -> str:
    """Content hash used for change detection.

    Returns:
        Absolute hash value in lowercase hexadecimal.
    """
    return format(abs(rolling_hash(text)), "x")


def truncated_remainder(value: int, divisor: int) -> int:
    """Remainder whose sign follows the dividend."""
    return int(math.fmod(value, divisor))
