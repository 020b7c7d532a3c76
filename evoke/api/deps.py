"""
Reusable FastAPI dependencies for the rate stack.

The RateCache is built once in ``evoke.main`` and kept on ``app.state``;
routers reach it through these dependencies so tests can swap it with
``app.dependency_overrides[get_rate_cache]``.
"""

from fastapi import Depends, Request

from evoke.services.converter import CurrencyConverter
from evoke.services.rate_service import RateCache, RateService


def get_rate_cache(request: Request) -> RateCache:
    return request.app.state.rate_cache


def get_rate_service(cache: RateCache = Depends(get_rate_cache)) -> RateService:
    return RateService(cache)


def get_converter(rates: RateService = Depends(get_rate_service)) -> CurrencyConverter:
    return CurrencyConverter(rates)
