"""Dependency injection for FastAPI endpoints"""

from functools import lru_cache

from fastapi import Request

from commission_gateway.bootstrap import build_calculator
from commission_gateway.config import get_settings
from commission_gateway.domain.commission import CommissionCalculator


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


@lru_cache
def get_calculator() -> CommissionCalculator:
    """Process-wide calculator so every request shares one reference-data cache"""
    return build_calculator(get_settings())
