"""
Test factories for generating realistic test data.

Uses factory_boy for declarative test data generation.
"""

from .quote import (
    QuoteItemFactory,
    ClientFactory,
    CompanyFactory,
    QuotePayloadFactory,
)

__all__ = [
    "QuoteItemFactory",
    "ClientFactory",
    "CompanyFactory",
    "QuotePayloadFactory",
]
