"""BIN lookup HTTP client resolving card issuer countries"""

import json
import logging

import httpx

from commission_gateway.domain.exceptions import BinLookupError, UpstreamErrorKind
from commission_gateway.domain.interfaces import CountryResolver
from commission_gateway.infrastructure.cache import ReferenceDataCache, safe_cache_key
from commission_gateway.infrastructure.clients.base import send_upstream_request, upstream_failure
from commission_gateway.infrastructure.observability.metrics import cache_lookup_counter

logger = logging.getLogger(__name__)

SERVICE = "binlist"


class BinListClient(CountryResolver):
    """Client for the external BIN lookup API"""

    # Issuer country assignment rarely changes and the API is severely rate limited
    CACHE_TTL = 30 * 24 * 60 * 60
    CACHE_PREFIX = "bin_lookup"

    def __init__(self, client: httpx.Client, cache: ReferenceDataCache):
        self.client = client
        self.cache = cache

    def resolve_country(self, bin: str) -> str:
        """
        Resolve the two-letter issuing country for a BIN, cache first.

        A cached value that is not a 2-character string is expired and
        re-fetched. Fetched codes are upper-cased and cached for 30 days.

        Raises:
            BinLookupError: On rate limiting, not found, HTTP or network
                failure, or a response without a valid country.alpha2
        """
        cache_key = safe_cache_key(self.CACHE_PREFIX, bin)
        cached, hit = self.cache.get(cache_key)

        if hit:
            if isinstance(cached, str) and len(cached) == 2:
                cache_lookup_counter.labels(cache="bin", outcome="hit").inc()
                logger.debug("Cache HIT for BIN", extra={"bin": bin, "cache_key": cache_key})
                return cached
            cache_lookup_counter.labels(cache="bin", outcome="corrupt").inc()
            logger.warning("Invalid data in cache for BIN, discarding", extra={"bin": bin, "cache_key": cache_key})
            self.cache.force_expire(cache_key)
        else:
            cache_lookup_counter.labels(cache="bin", outcome="miss").inc()

        logger.debug("Cache MISS for BIN, fetching from API", extra={"bin": bin})
        body = send_upstream_request(
            self.client,
            bin,
            service=SERVICE,
            label="BIN lookup",
            error_cls=BinLookupError,
            not_found_message=f"BIN {bin} not found via lookup service.",
        )

        try:
            data = json.loads(body)
        except ValueError as e:
            raise upstream_failure(
                BinLookupError, SERVICE, "Invalid JSON received from BIN API.", UpstreamErrorKind.INVALID_RESPONSE
            ) from e

        country = data.get("country") if isinstance(data, dict) else None
        country_code = country.get("alpha2") if isinstance(country, dict) else None
        if not isinstance(country_code, str) or len(country_code) != 2:
            raise upstream_failure(
                BinLookupError,
                SERVICE,
                f"Country code missing or invalid in BIN API response for BIN: {bin}",
                UpstreamErrorKind.INVALID_RESPONSE,
            )

        country_code = country_code.upper()
        self.cache.set(cache_key, country_code, self.CACHE_TTL)
        logger.info("Fetched and cached country code for BIN", extra={"bin": bin, "country_code": country_code})
        return country_code
