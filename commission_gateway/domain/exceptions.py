"""Domain-specific exceptions"""

from enum import Enum


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class TransactionValidationError(DomainException, ValueError):
    """Transaction record failed field validation"""

    pass


class UpstreamErrorKind(str, Enum):
    """Distinguishable causes of a reference-data lookup failure"""

    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    HTTP_ERROR = "http_error"
    NETWORK = "network"
    INVALID_RESPONSE = "invalid_response"
    API_FAILURE = "api_failure"


class UpstreamError(DomainException):
    """Reference-data service failed or returned unusable data"""

    def __init__(self, message: str, kind: UpstreamErrorKind, status_code: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class BinLookupError(UpstreamError):
    """BIN lookup service returned an error or is unavailable"""

    pass


class ExchangeRateError(UpstreamError):
    """Exchange rate service returned an error or unusable rates"""

    pass


class InvalidExchangeRateError(DomainException):
    """Resolved exchange rate cannot be used for conversion"""

    pass
