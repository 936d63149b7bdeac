"""Exact fixed-point arithmetic for ETH and token quantities.

Values are Python integers scaled by 10**18, so a quantity of 1.5 is stored as
1_500_000_000_000_000_000. Addition and subtraction are exact; multiplication
and division truncate toward zero at the 18th fractional digit. No float is
ever involved, so repeated updates do not drift.
"""

from __future__ import annotations

from decimal import Decimal
from fractions import Fraction
from functools import total_ordering

from beartype import beartype

from src.accounting.errors import DivisionByZero, InvalidAmount

SCALE_DIGITS = 18
SCALE = 10**SCALE_DIGITS


def _div_trunc(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero (Python's // floors)."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


@total_ordering
class FixedPoint:
    """Signed decimal with exactly 18 fractional digits."""

    __slots__ = ("_scaled",)

    def __init__(self, scaled: int) -> None:
        """
        Wrap an already-scaled integer.

        Args:
            scaled: Value multiplied by 10**18
        """
        if isinstance(scaled, bool) or not isinstance(scaled, int):
            raise TypeError(f"FixedPoint expects a scaled int, got {type(scaled).__name__}")
        self._scaled = scaled

    # --- Constructors ---

    @classmethod
    def zero(cls) -> FixedPoint:
        return cls(0)

    @classmethod
    def from_int(cls, value: int) -> FixedPoint:
        return cls(value * SCALE)

    @classmethod
    @beartype
    def from_raw(cls, raw: int, decimals: int = SCALE_DIGITS) -> FixedPoint:
        """
        Convert a raw on-chain integer amount into a fixed-point quantity.

        Args:
            raw: Amount in the smallest indivisible unit (wei-like)
            decimals: Number of fractional digits the raw amount carries

        Returns:
            raw / 10**decimals, truncated to 18 fractional digits

        Raises:
            InvalidAmount: If raw is negative or decimals is out of range
        """
        if raw < 0:
            raise InvalidAmount(f"Raw amount must be non-negative, got {raw}")
        if decimals < 0 or decimals > 77:
            raise InvalidAmount(f"Unsupported decimals: {decimals}")
        if decimals <= SCALE_DIGITS:
            return cls(raw * 10 ** (SCALE_DIGITS - decimals))
        return cls(raw // 10 ** (decimals - SCALE_DIGITS))

    @classmethod
    @beartype
    def from_string(cls, text: str) -> FixedPoint:
        """
        Parse a canonical decimal string such as "-12.5" or "0.000000000000000001".

        Raises:
            InvalidAmount: If the text isn't a plain decimal number
        """
        body = text.strip()
        negative = body.startswith("-")
        if negative or body.startswith("+"):
            body = body[1:]
        whole, _, fraction = body.partition(".")
        if not whole and not fraction:
            raise InvalidAmount(f"Not a decimal number: {text!r}")
        if not (whole or "0").isdigit() or (fraction and not fraction.isdigit()):
            raise InvalidAmount(f"Not a decimal number: {text!r}")
        fraction = fraction[:SCALE_DIGITS].ljust(SCALE_DIGITS, "0")
        scaled = int(whole or "0") * SCALE + int(fraction)
        return cls(-scaled if negative else scaled)

    # --- Accessors ---

    @property
    def scaled(self) -> int:
        """The underlying integer, value * 10**18."""
        return self._scaled

    def is_zero(self) -> bool:
        return self._scaled == 0

    def to_decimal(self) -> Decimal:
        return Decimal(self._scaled).scaleb(-SCALE_DIGITS)

    # --- Arithmetic ---

    @staticmethod
    def _coerce(other: object) -> FixedPoint:
        if isinstance(other, FixedPoint):
            return other
        if isinstance(other, int) and not isinstance(other, bool):
            return FixedPoint.from_int(other)
        return NotImplemented

    def __add__(self, other: object) -> FixedPoint:
        other = self._coerce(other)
        if other is NotImplemented:
            return NotImplemented
        return FixedPoint(self._scaled + other._scaled)

    __radd__ = __add__

    def __sub__(self, other: object) -> FixedPoint:
        other = self._coerce(other)
        if other is NotImplemented:
            return NotImplemented
        return FixedPoint(self._scaled - other._scaled)

    def __rsub__(self, other: object) -> FixedPoint:
        other = self._coerce(other)
        if other is NotImplemented:
            return NotImplemented
        return FixedPoint(other._scaled - self._scaled)

    def __mul__(self, other: object) -> FixedPoint:
        other = self._coerce(other)
        if other is NotImplemented:
            return NotImplemented
        return FixedPoint(_div_trunc(self._scaled * other._scaled, SCALE))

    __rmul__ = __mul__

    def __truediv__(self, other: object) -> FixedPoint:
        other = self._coerce(other)
        if other is NotImplemented:
            return NotImplemented
        if other._scaled == 0:
            raise DivisionByZero(f"Cannot divide {self} by zero")
        return FixedPoint(_div_trunc(self._scaled * SCALE, other._scaled))

    def __neg__(self) -> FixedPoint:
        return FixedPoint(-self._scaled)

    def __abs__(self) -> FixedPoint:
        return FixedPoint(abs(self._scaled))

    # --- Comparison ---

    def __eq__(self, other: object) -> bool:
        other = self._coerce(other)
        if other is NotImplemented:
            return NotImplemented
        return self._scaled == other._scaled

    def __lt__(self, other: object) -> bool:
        other = self._coerce(other)
        if other is NotImplemented:
            return NotImplemented
        return self._scaled < other._scaled

    def __hash__(self) -> int:
        # Equal to hash(n) for whole values, matching int equality
        return hash(Fraction(self._scaled, SCALE))

    def __bool__(self) -> bool:
        return self._scaled != 0

    # Immutable, so copies can share the instance
    def __copy__(self) -> FixedPoint:
        return self

    def __deepcopy__(self, memo: dict) -> FixedPoint:
        return self

    # --- Rendering ---

    def __str__(self) -> str:
        whole, fraction = divmod(abs(self._scaled), SCALE)
        sign = "-" if self._scaled < 0 else ""
        if fraction == 0:
            return f"{sign}{whole}"
        digits = str(fraction).rjust(SCALE_DIGITS, "0").rstrip("0")
        return f"{sign}{whole}.{digits}"

    def __repr__(self) -> str:
        return f"FixedPoint('{self}')"


@beartype
def raw_to_decimal(raw: int, decimals: int = SCALE_DIGITS) -> FixedPoint:
    """
    Convert a raw integer amount (wei, token base units) to a FixedPoint.

    Args:
        raw: Non-negative amount in the smallest unit
        decimals: Fractional digits of the asset (18 for ETH)

    Returns:
        Exact fixed-point quantity
    """
    return FixedPoint.from_raw(raw, decimals)
