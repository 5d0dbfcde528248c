"""
barcode.py — retail barcode classification and check-digit validation.

Supported symbologies:
  EAN-13  13 digits, GS1 check digit
  UPC-A   12 digits, GS1 check digit
  EAN-8    8 digits, GS1 check digit
  UPC-E    6–8 digits, format-only (never expanded to UPC-A)

An 8-digit code whose EAN-8 check digit fails is still accepted as UPC-E,
because the two symbologies share that length and UPC-E is not checksummed here.

Everything in this module is pure: no I/O, no state.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

_DIGITS = re.compile(r"^\d+$")

MIN_LENGTH = 6
MAX_LENGTH = 13


class Symbology(str, Enum):
    EAN13   = "EAN-13"
    EAN8    = "EAN-8"
    UPCA    = "UPC-A"
    UPCE    = "UPC-E"
    INVALID = "invalid"


# ── Errors ────────────────────────────────────────────────────────────────────

class BarcodeError(ValueError):
    """Base class for rejected barcode input. Never retried: bad input stays bad."""
    code = "invalid"

    def __init__(self, raw: str, message: str) -> None:
        super().__init__(message)
        self.raw = raw
        self.message = message


class NonNumericError(BarcodeError):
    code = "non_numeric"


class TooShortError(BarcodeError):
    code = "too_short"


class TooLongError(BarcodeError):
    code = "too_long"


class ChecksumMismatchError(BarcodeError):
    code = "checksum_mismatch"

    def __init__(self, raw: str, symbology: Symbology, expected: int) -> None:
        super().__init__(raw, f"Invalid {symbology.value} barcode. Check digit verification failed.")
        self.symbology = symbology
        self.expected = expected


# ── Results ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Barcode:
    """A validated barcode. Only parse_barcode() should build these."""
    value: str
    symbology: Symbology

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    symbology: Symbology
    message: str
    error: Optional[str] = None     # BarcodeError.code when invalid


# ── Check digit ───────────────────────────────────────────────────────────────

def gs1_check_digit(payload: str) -> int:
    """
    GS1 check digit for the digits preceding it.

    Weights are anchored on the right: the digit next to the check digit
    gets 3, then 1, 3, 1… leftwards. Read from the left that is 1/3 for
    EAN-13 payloads (12 digits) and 3/1 for EAN-8 (7) and UPC-A (11).
    """
    total = 0
    for i, ch in enumerate(reversed(payload)):
        total += int(ch) * (3 if i % 2 == 0 else 1)
    return (10 - total % 10) % 10


def _checksum_ok(code: str) -> bool:
    return gs1_check_digit(code[:-1]) == int(code[-1])


# ── Public API ────────────────────────────────────────────────────────────────

def parse_barcode(raw: str) -> Barcode:
    """
    Validate raw scanner/keyboard input and return a Barcode.
    Raises a BarcodeError subclass describing why the input was rejected.
    """
    if raw is None:
        raise NonNumericError("", "Barcode is required")
    code = str(raw).strip()

    if not _DIGITS.match(code):
        raise NonNumericError(code, "Barcode must contain only numbers")

    length = len(code)
    if length < MIN_LENGTH:
        raise TooShortError(code, "Barcode is too short. Expected 8, 12, or 13 digits.")
    if length > MAX_LENGTH:
        raise TooLongError(code, "Barcode is too long. Expected 8, 12, or 13 digits.")

    if length == 13:
        if not _checksum_ok(code):
            raise ChecksumMismatchError(code, Symbology.EAN13, gs1_check_digit(code[:-1]))
        return Barcode(code, Symbology.EAN13)

    if length == 12:
        if not _checksum_ok(code):
            raise ChecksumMismatchError(code, Symbology.UPCA, gs1_check_digit(code[:-1]))
        return Barcode(code, Symbology.UPCA)

    if length == 8 and _checksum_ok(code):
        return Barcode(code, Symbology.EAN8)

    if length in (6, 7, 8):
        return Barcode(code, Symbology.UPCE)

    # 9–11 digits: no symbology lives here, and they're short of a UPC-A
    raise TooShortError(code, f"Barcode has {length} digits. Expected 8, 12, or 13 digits.")


def validate(raw: str) -> ValidationResult:
    """Non-raising form of parse_barcode(), suitable for form feedback."""
    try:
        barcode = parse_barcode(raw)
    except BarcodeError as exc:
        return ValidationResult(
            valid=False,
            symbology=Symbology.INVALID,
            message=exc.message,
            error=exc.code,
        )
    return ValidationResult(
        valid=True,
        symbology=barcode.symbology,
        message=f"Valid {barcode.symbology.value} barcode",
    )


def classify(raw: str) -> Symbology:
    """Return the detected symbology, or Symbology.INVALID."""
    return validate(raw).symbology
