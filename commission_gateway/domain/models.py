"""Domain models - pure Python dataclasses representing business entities"""

import math
import re
from dataclasses import dataclass

from commission_gateway.domain.exceptions import TransactionValidationError

BIN_PATTERN = re.compile(r"[0-9]{6,16}")
CURRENCY_PATTERN = re.compile(r"[A-Za-z]{3}")


@dataclass(frozen=True)
class Transaction:
    """
    Card transaction awaiting a commission.

    Construction validates every field before the instance exists, so an
    invalid Transaction can never be observed. Currency is stored upper-cased.

    Raises:
        TransactionValidationError: If bin, amount or currency is malformed
    """

    bin: str
    amount: float
    currency: str

    def __post_init__(self) -> None:
        if not isinstance(self.bin, str) or not BIN_PATTERN.fullmatch(self.bin):
            raise TransactionValidationError(f"Invalid BIN format provided: {self.bin}")

        if isinstance(self.amount, bool) or not isinstance(self.amount, (int, float)):
            raise TransactionValidationError(f"Invalid amount provided: {self.amount!r}. Must be a number.")
        if not math.isfinite(self.amount) or self.amount < 0:
            raise TransactionValidationError(f"Invalid amount provided: {self.amount}. Must be non-negative.")

        if not isinstance(self.currency, str) or not CURRENCY_PATTERN.fullmatch(self.currency):
            raise TransactionValidationError(
                f"Invalid currency code provided: {self.currency}. Must be 3 letters."
            )

        object.__setattr__(self, "amount", float(self.amount))
        object.__setattr__(self, "currency", self.currency.upper())


@dataclass(frozen=True)
class CommissionResult:
    """Outcome of a commission calculation, kept for logging and metrics"""

    transaction: Transaction
    country_code: str
    is_eu: bool
    rate: float
    amount_in_reference: float
    commission_rate: float
    commission: float
