"""Exchange rate HTTP client deriving reference-currency cross-rates.

The upstream live endpoint only quotes against USD (the pivot), e.g.
{"success": true, "source": "USD", "quotes": {"USDEUR": 0.9, "USDJPY": 150.0}}.
A reference-currency rate for any target is therefore

    reference_rate(TARGET) = pivot_rate(TARGET) / pivot_rate(REFERENCE)

so with USDEUR=0.90 and USDJPY=150.00, 1 EUR = 166.67 JPY. The whole
snapshot is cached as one entry, so a single upstream call serves every
currency requested within the TTL.
"""

import json
import logging
import math
import threading
from typing import Any, Dict

import httpx

from commission_gateway.domain.exceptions import ExchangeRateError, UpstreamErrorKind
from commission_gateway.domain.interfaces import RateResolver
from commission_gateway.infrastructure.cache import ReferenceDataCache
from commission_gateway.infrastructure.clients.base import send_upstream_request, upstream_failure
from commission_gateway.infrastructure.observability.metrics import cache_lookup_counter

logger = logging.getLogger(__name__)

SERVICE = "exchange_rates"
PIVOT_CURRENCY = "USD"


def _as_number(value: Any) -> float | None:
    """Numbers and numeric strings convert; booleans, NaN and infinities do not"""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


class ExchangeRatesClient(RateResolver):
    """Client for the external live exchange rate API"""

    # Matches the upstream refresh cadence
    CACHE_TTL = 60 * 60
    CACHE_KEY = "latest_usd_rates"

    def __init__(
        self,
        client: httpx.Client,
        cache: ReferenceDataCache,
        api_key: str,
        reference_currency: str = "EUR",
    ):
        self.client = client
        self.cache = cache
        self.api_key = api_key
        self.reference_currency = reference_currency.upper()
        self._fetch_lock = threading.Lock()

    def resolve_rate(self, currency: str) -> float:
        """
        Rate such that 1 unit of reference currency = rate units of currency.

        The reference currency itself short-circuits to 1.0 without touching
        the cache or the network.

        Raises:
            ExchangeRateError: On upstream failure, or if the pivot-to-reference
                quote is missing, non-numeric or not strictly positive, or the
                pivot-to-target quote is missing, non-numeric or negative
        """
        currency = currency.upper()
        if currency == self.reference_currency:
            logger.debug("Requested rate for reference currency, returning 1.0", extra={"currency": currency})
            return 1.0

        quotes = self._latest_quotes()

        pivot_to_reference = self._quote(quotes, self.reference_currency)
        if pivot_to_reference <= 0:
            raise upstream_failure(
                ExchangeRateError,
                SERVICE,
                f"Invalid rate value for {PIVOT_CURRENCY}{self.reference_currency}: {pivot_to_reference}",
                UpstreamErrorKind.INVALID_RESPONSE,
            )

        if currency == PIVOT_CURRENCY:
            pivot_to_target = 1.0
        else:
            pivot_to_target = self._quote(quotes, currency)
            if pivot_to_target < 0:
                raise upstream_failure(
                    ExchangeRateError,
                    SERVICE,
                    f"Invalid rate value for {PIVOT_CURRENCY}{currency}: {pivot_to_target}",
                    UpstreamErrorKind.INVALID_RESPONSE,
                )

        rate = pivot_to_target / pivot_to_reference
        logger.debug(
            "Calculated reference-currency rate",
            extra={"currency": currency, "reference_currency": self.reference_currency, "rate": rate},
        )
        return rate

    def _quote(self, quotes: Dict[str, Any], currency: str) -> float:
        key = f"{PIVOT_CURRENCY}{currency}"
        if key not in quotes or quotes[key] is None:
            raise upstream_failure(
                ExchangeRateError,
                SERVICE,
                f"Rate '{key}' not found in API quotes.",
                UpstreamErrorKind.NOT_FOUND,
            )
        value = _as_number(quotes[key])
        if value is None:
            raise upstream_failure(
                ExchangeRateError,
                SERVICE,
                f"Invalid rate value for {key}: {quotes[key]!r}",
                UpstreamErrorKind.INVALID_RESPONSE,
            )
        return value

    def _latest_quotes(self) -> Dict[str, Any]:
        """Quotes mapping from cache or API; one fetch at a time per client"""
        with self._fetch_lock:
            data = self._cached_rates()
            if data is None:
                data = self._fetch_rates()
        return data["quotes"]

    def _cached_rates(self) -> Dict[str, Any] | None:
        cached, hit = self.cache.get(self.CACHE_KEY)
        if not hit:
            cache_lookup_counter.labels(cache="rates", outcome="miss").inc()
            return None

        try:
            data = json.loads(cached) if isinstance(cached, (str, bytes)) else None
        except ValueError:
            data = None

        if isinstance(data, dict) and isinstance(data.get("quotes"), dict):
            cache_lookup_counter.labels(cache="rates", outcome="hit").inc()
            logger.debug("Cache HIT for rates", extra={"cache_key": self.CACHE_KEY})
            return data

        cache_lookup_counter.labels(cache="rates", outcome="corrupt").inc()
        logger.warning("Invalid data found in rate cache, fetching fresh data", extra={"cache_key": self.CACHE_KEY})
        self.cache.force_expire(self.CACHE_KEY)
        return None

    def _fetch_rates(self) -> Dict[str, Any]:
        """
        Fetch the live snapshot and cache the raw body for an hour.

        The payload must report success, carry a quotes mapping and declare
        USD as its source; anything else fails the fetch outright.
        """
        logger.debug("Cache MISS for rates, fetching from API", extra={"cache_key": self.CACHE_KEY})
        body = send_upstream_request(
            self.client,
            "live",
            service=SERVICE,
            label="Rate API",
            error_cls=ExchangeRateError,
            params={"access_key": self.api_key},
        )

        try:
            data = json.loads(body)
        except ValueError as e:
            raise upstream_failure(
                ExchangeRateError, SERVICE, "Invalid JSON received from API.", UpstreamErrorKind.INVALID_RESPONSE
            ) from e

        if not isinstance(data, dict):
            raise upstream_failure(
                ExchangeRateError,
                SERVICE,
                "Invalid API response: Unknown API Response Structure Issue",
                UpstreamErrorKind.INVALID_RESPONSE,
            )

        if data.get("success") is False:
            error = data.get("error") if isinstance(data.get("error"), dict) else {}
            detail = error.get("info") or error.get("type") or "Unknown API error"
            raise upstream_failure(
                ExchangeRateError, SERVICE, f"Invalid API response: {detail}", UpstreamErrorKind.API_FAILURE
            )
        if data.get("success") is not True:
            raise upstream_failure(
                ExchangeRateError,
                SERVICE,
                "Invalid API response: Missing 'success' field",
                UpstreamErrorKind.INVALID_RESPONSE,
            )
        if not isinstance(data.get("quotes"), dict):
            raise upstream_failure(
                ExchangeRateError,
                SERVICE,
                "Invalid API response: Missing 'quotes' field",
                UpstreamErrorKind.INVALID_RESPONSE,
            )
        if data.get("source") != PIVOT_CURRENCY:
            raise upstream_failure(
                ExchangeRateError,
                SERVICE,
                f"Invalid API response: Missing or incorrect 'source' field (expected {PIVOT_CURRENCY})",
                UpstreamErrorKind.INVALID_RESPONSE,
            )

        self.cache.set(self.CACHE_KEY, body, self.CACHE_TTL)
        logger.info("Fetched and cached latest rates", extra={"cache_key": self.CACHE_KEY})
        return data
