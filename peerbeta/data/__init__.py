"""
Market Data Module

Collaborator boundary for the beta service. Everything the core consumes
from the outside world passes through the narrow types defined here.

Module Structure:
- provider.py: MarketDataProvider base class and result types
- yfinance_provider.py: Yahoo Finance implementation
- recommendations.py: Yahoo related-symbol feed (aiohttp)
- industry_reference.py: static industry classification table

Usage:
    from peerbeta.data import YFinanceProvider, IndustryReference

    reference = IndustryReference.from_excel("attached_assets/companies.xlsx")
    async with YFinanceProvider() as provider:
        profile = await provider.fetch_profile("TCS.NS")
"""

from peerbeta.data.provider import (
    CompanyProfile,
    MarketDataProvider,
    PricePoint,
    PriceSeries,
    Quote,
    safe_float,
)
from peerbeta.data.recommendations import YahooRecommendationClient
from peerbeta.data.yfinance_provider import YFinanceProvider
from peerbeta.data.industry_reference import IndustryEntry, IndustryReference

__all__ = [
    'CompanyProfile',
    'MarketDataProvider',
    'PricePoint',
    'PriceSeries',
    'Quote',
    'safe_float',
    'YahooRecommendationClient',
    'YFinanceProvider',
    'IndustryEntry',
    'IndustryReference',
]
