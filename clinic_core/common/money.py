# clinic_core/common/money.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

CENT = Decimal("0.01")


@dataclass(frozen=True, order=True)
class MoneyAmount:
    """
    Fixed-point currency amount (two decimal places).

    Every monetary value in the ledger goes through this type. Floats are
    rejected at construction so binary rounding can never leak into balances.
    """
    amount: Decimal

    def __post_init__(self) -> None:
        value = self.amount
        if isinstance(value, float):
            raise TypeError("MoneyAmount does not accept float values; pass Decimal, int or str.")
        if not isinstance(value, Decimal):
            try:
                value = Decimal(str(value).strip())
            except (InvalidOperation, ValueError) as exc:
                raise ValueError(f"Invalid money amount: {self.amount!r}") from exc
        if not value.is_finite():
            raise ValueError(f"Invalid money amount: {self.amount!r}")
        object.__setattr__(self, "amount", value.quantize(CENT, rounding=ROUND_HALF_UP))

    @classmethod
    def of(cls, value: MoneyAmount | Decimal | int | str) -> MoneyAmount:
        if isinstance(value, MoneyAmount):
            return value
        return cls(value)

    @classmethod
    def zero(cls) -> MoneyAmount:
        return cls(Decimal("0"))

    @classmethod
    def sum(cls, values: Iterable[MoneyAmount]) -> MoneyAmount:
        total = cls.zero()
        for v in values:
            total = total + cls.of(v)
        return total

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def clamp_at_zero(self) -> MoneyAmount:
        return self if not self.is_negative else MoneyAmount.zero()

    def __add__(self, other: MoneyAmount) -> MoneyAmount:
        if not isinstance(other, MoneyAmount):
            return NotImplemented
        return MoneyAmount(self.amount + other.amount)

    def __sub__(self, other: MoneyAmount) -> MoneyAmount:
        if not isinstance(other, MoneyAmount):
            return NotImplemented
        return MoneyAmount(self.amount - other.amount)

    def __neg__(self) -> MoneyAmount:
        return MoneyAmount(-self.amount)

    def __abs__(self) -> MoneyAmount:
        return MoneyAmount(abs(self.amount))

    def __str__(self) -> str:
        return str(self.amount)

    def __repr__(self) -> str:
        return f"MoneyAmount('{self.amount}')"
