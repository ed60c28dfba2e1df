"""Commission engine - core business logic for transaction commissions"""

import logging
from decimal import Decimal

from commission_gateway.domain.exceptions import InvalidExchangeRateError
from commission_gateway.domain.interfaces import CountryResolver, RateResolver
from commission_gateway.domain.models import CommissionResult, Transaction
from commission_gateway.utils.money import ceil_to_cents, to_decimal

logger = logging.getLogger(__name__)

EU_COMMISSION_RATE = Decimal("0.01")
NON_EU_COMMISSION_RATE = Decimal("0.02")

EU_COUNTRIES = frozenset(
    {
        "AT", "BE", "BG", "CY", "CZ", "DE", "DK", "EE", "ES",
        "FI", "FR", "GR", "HR", "HU", "IE", "IT", "LT", "LU",
        "LV", "MT", "NL", "PL", "PT", "RO", "SE", "SI", "SK",
    }
)


def is_eu(country_code: str) -> bool:
    """Case-insensitive EU membership test"""
    return country_code.upper() in EU_COUNTRIES


class CommissionCalculator:
    """Combines issuer country and exchange rate into a reference-currency commission"""

    def __init__(self, country_resolver: CountryResolver, rate_resolver: RateResolver):
        self.country_resolver = country_resolver
        self.rate_resolver = rate_resolver

    @property
    def reference_currency(self) -> str:
        return self.rate_resolver.reference_currency.upper()

    def evaluate(self, transaction: Transaction) -> CommissionResult:
        """
        Run the full calculation and return every intermediate figure.

        Flow:
        1. Resolve issuing country and classify EU membership
        2. Resolve exchange rate (1 reference unit = rate units of transaction currency)
        3. Convert amount to reference currency
        4. Apply 1% (EU) or 2% (non-EU) and round up to the next cent

        Resolver errors propagate unchanged; no partial commission is produced.

        Raises:
            InvalidExchangeRateError: If the resolved rate is not strictly positive
        """
        logger.info("Calculating commission", extra={"bin": transaction.bin})

        country_code = self.country_resolver.resolve_country(transaction.bin)
        eu = is_eu(country_code)
        logger.debug("Country resolved", extra={"country_code": country_code, "is_eu": eu})

        rate = self.rate_resolver.resolve_rate(transaction.currency)
        # NaN fails this comparison as well
        if not rate > 0:
            raise InvalidExchangeRateError(
                f"Invalid exchange rate received: {rate} for {transaction.currency}"
            )

        amount = to_decimal(transaction.amount)
        if transaction.currency == self.reference_currency:
            amount_in_reference = amount
        else:
            amount_in_reference = amount / to_decimal(rate)

        commission_rate = EU_COMMISSION_RATE if eu else NON_EU_COMMISSION_RATE
        commission = ceil_to_cents(amount_in_reference * commission_rate)

        logger.debug(
            "Commission computed",
            extra={
                "rate": rate,
                "amount_in_reference": str(amount_in_reference),
                "commission_rate": str(commission_rate),
                "commission": str(commission),
            },
        )

        return CommissionResult(
            transaction=transaction,
            country_code=country_code,
            is_eu=eu,
            rate=rate,
            amount_in_reference=float(amount_in_reference),
            commission_rate=float(commission_rate),
            commission=float(commission),
        )

    def calculate_commission(self, transaction: Transaction) -> float:
        """Commission in reference currency, rounded up to 2 decimal places"""
        return self.evaluate(transaction).commission
