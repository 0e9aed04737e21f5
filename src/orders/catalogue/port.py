"""Catalogue gateway port (abstract interface).

The orders context never owns product data. At placement time it asks the
catalogue for the current unit price of each product reference and copies
that price onto the order line, after which catalogue changes no longer
matter to the order.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class CatalogueProduct:
    """Price snapshot of a product as the catalogue reports it right now."""

    product_ref: str
    name: str
    unit_price: Decimal


class CatalogueGateway(ABC):
    """Abstract catalogue lookup interface."""

    @abstractmethod
    def lookup(self, product_ref: str) -> CatalogueProduct | None:
        """Return the product for a reference, or None when it does not exist."""
        ...
