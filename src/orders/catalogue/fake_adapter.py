"""In-memory catalogue for development and testing."""

from decimal import Decimal

from orders.catalogue.port import CatalogueGateway, CatalogueProduct


class FakeCatalogue(CatalogueGateway):
    """Catalogue backed by a dict, seeded at runtime."""

    def __init__(self) -> None:
        self.products: dict[str, CatalogueProduct] = {}
        self.calls: list[str] = []

    def add_product(self, product_ref: str, name: str, unit_price) -> CatalogueProduct:
        product = CatalogueProduct(product_ref=product_ref, name=name, unit_price=Decimal(str(unit_price)))
        self.products[product_ref] = product
        return product

    def reprice(self, product_ref: str, unit_price) -> None:
        current = self.products[product_ref]
        self.products[product_ref] = CatalogueProduct(
            product_ref=current.product_ref,
            name=current.name,
            unit_price=Decimal(str(unit_price)),
        )

    def lookup(self, product_ref: str) -> CatalogueProduct | None:
        self.calls.append(product_ref)
        return self.products.get(product_ref)
