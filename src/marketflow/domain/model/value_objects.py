"""Money and Quantity, the two values every order line is priced with."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from marketflow.domain.exceptions import ValidationError

_SYMBOLS = {"INR": "₹", "USD": "$", "EUR": "€"}


@dataclass(frozen=True)
class Money:
    """A non-negative Decimal amount tagged with an ISO currency code.

    Retail and wholesale prices are both quoted in rupees unless a
    currency is given. Amounts in different currencies never mix.
    """

    amount: Decimal
    currency: str = "INR"

    @staticmethod
    def of(amount: str | float | int | Decimal, currency: str = "INR") -> Money:
        # str() first so 0.1 becomes Decimal("0.1"), not its binary expansion
        try:
            return Money(Decimal(str(amount)), currency)
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(f"Invalid money amount: {amount!r}") from exc

    @staticmethod
    def zero(currency: str = "INR") -> Money:
        return Money(Decimal("0.00"), currency)

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise ValidationError(
                f"Money amount must be a Decimal, got {type(self.amount).__name__}"
            )
        if self.amount < 0:
            raise ValidationError(
                f"Money amount cannot be negative, got {self.amount}"
            )

    def __add__(self, other: Money) -> Money:
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, factor: int) -> Money:
        """Line total: unit price times a whole number of units."""
        if not isinstance(factor, int):
            raise TypeError(f"Can only multiply Money by int, got {type(factor).__name__}")
        return Money(self.amount * factor, self.currency)

    def __lt__(self, other: Money) -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        self._check_currency(other)
        return self.amount <= other.amount

    def __str__(self) -> str:
        symbol = _SYMBOLS.get(self.currency, f"{self.currency} ")
        return f"{symbol}{self.amount:.2f}"

    def _check_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise ValidationError(
                f"Cannot combine {self.currency} with {other.currency}"
            )


@dataclass(frozen=True)
class Quantity:
    """Units on an order line. Always a plain int of at least one."""

    value: int

    def __post_init__(self) -> None:
        # bool is an int subclass; Quantity(True) is a caller bug
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValidationError(
                f"Quantity must be an integer, got {type(self.value).__name__}"
            )
        if self.value <= 0:
            raise ValidationError("Quantity must be positive")

    def __str__(self) -> str:
        return str(self.value)
