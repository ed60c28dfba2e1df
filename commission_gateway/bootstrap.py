"""Assemble resolvers and the commission engine from settings"""

from commission_gateway.config import Settings
from commission_gateway.domain.commission import CommissionCalculator
from commission_gateway.infrastructure.cache import FileSystemCache, InMemoryCache, ReferenceDataCache
from commission_gateway.infrastructure.clients.base import build_http_client
from commission_gateway.infrastructure.clients.binlist import BinListClient
from commission_gateway.infrastructure.clients.exchange_rates import ExchangeRatesClient


def build_cache(settings: Settings) -> ReferenceDataCache:
    """Shared reference-data cache for both resolvers"""
    if settings.cache_backend == "memory":
        return InMemoryCache()
    return FileSystemCache(settings.cache_dir)


def build_calculator(settings: Settings, cache: ReferenceDataCache | None = None) -> CommissionCalculator:
    """Wire httpx clients, resolvers and the engine around one cache"""
    if cache is None:
        cache = build_cache(settings)

    country_resolver = BinListClient(
        client=build_http_client(settings.bin_lookup_url, settings.http_timeout_seconds),
        cache=cache,
    )
    rate_resolver = ExchangeRatesClient(
        client=build_http_client(settings.exchange_rates_url, settings.http_timeout_seconds),
        cache=cache,
        api_key=settings.exchange_rates_api_key,
        reference_currency=settings.reference_currency,
    )
    return CommissionCalculator(country_resolver, rate_resolver)
