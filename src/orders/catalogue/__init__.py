"""Catalogue gateway factory.

Provides get_catalogue() / set_catalogue() to swap implementations.
"""

from orders.catalogue.fake_adapter import FakeCatalogue
from orders.catalogue.port import CatalogueGateway

_current_catalogue: CatalogueGateway | None = None


def get_catalogue() -> CatalogueGateway:
    """Return the current catalogue gateway. Defaults to FakeCatalogue."""
    global _current_catalogue
    if _current_catalogue is None:
        _current_catalogue = FakeCatalogue()
    return _current_catalogue


def set_catalogue(catalogue: CatalogueGateway) -> None:
    """Override the active catalogue gateway (useful for tests)."""
    global _current_catalogue
    _current_catalogue = catalogue


def reset_catalogue() -> None:
    """Reset to default catalogue gateway."""
    global _current_catalogue
    _current_catalogue = None
