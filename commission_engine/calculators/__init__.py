"""
Calculators Package

Provides all calculation components of the commission engine.
"""

from .aggregation import AggregationEngine
from .marketing import MarketingCommissionResolver
from .sale import SaleCalculator, TaxRateConverter, quantize_money

__all__ = [
    "SaleCalculator",
    "TaxRateConverter",
    "MarketingCommissionResolver",
    "AggregationEngine",
    "quantize_money",
]
