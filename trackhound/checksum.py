"""
Checksum primitives for tracking-number verification.

Callers must pass ASCII digits only (letters are mapped beforehand by the
UPS-specific helpers below).
"""

from typing import Sequence


def verify(digits: str, weights: Sequence[int], modulus: int) -> bool:
    """
    Verify the trailing check digit of ``digits``.

    Every digit except the last is multiplied by ``weights`` applied
    cyclically. For modulus 11 the check digit is ``sum % 11`` (10 becomes 0);
    for modulus 10 it is the complement ``(10 - sum % 10) % 10``.

    Args:
        digits: Numeric string, check digit last
        weights: Positional multipliers, wrapped around when exhausted
        modulus: 10 or 11

    Returns:
        True when the computed check digit equals the last digit
    """
    if modulus not in (10, 11):
        raise ValueError(f"Unsupported checksum modulus: {modulus}")

    total = 0
    for index, char in enumerate(digits[:-1]):
        total += int(char) * weights[index % len(weights)]

    if modulus == 11:
        check = total % 11
        if check == 10:
            check = 0
    else:
        check = (10 - total % 10) % 10

    return check == int(digits[-1])


def _letter_value(char: str) -> int:
    """UPS maps letters onto digits via their ASCII code: A=2, B=3, ... J=1."""
    if char.isdigit():
        return int(char)
    return (ord(char) - 63) % 10


def ups_check_digit(number: str) -> bool:
    """Verify a ``1Z`` UPS number: positions 2-16, odd positions doubled, mod 10."""
    total = 0
    for index in range(2, 17):
        value = _letter_value(number[index])
        if index % 2:
            value *= 2
        total += value

    check = (10 - total % 10) % 10
    return check == int(number[17])

