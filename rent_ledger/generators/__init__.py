"""Sample data generators."""

from rent_ledger.generators.base import BaseGenerator
from rent_ledger.generators.portfolio import PortfolioGenerator

__all__ = ["BaseGenerator", "PortfolioGenerator"]
