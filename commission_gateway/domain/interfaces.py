"""Reference-data capabilities consumed by the commission engine.

Each resolver exposes a single method so test doubles and alternative
upstream providers can be swapped in without touching the engine.
"""

from abc import ABC, abstractmethod


class CountryResolver(ABC):
    @abstractmethod
    def resolve_country(self, bin: str) -> str:
        """Return the ISO 3166-1 alpha-2 issuing country (uppercase) for a BIN."""
        raise NotImplementedError


class RateResolver(ABC):
    reference_currency: str = "EUR"

    @abstractmethod
    def resolve_rate(self, currency: str) -> float:
        """Return X where 1 unit of reference currency = X units of currency."""
        raise NotImplementedError
