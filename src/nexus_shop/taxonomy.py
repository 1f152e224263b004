"""Distinct category, brand, and model names derived from the catalog.

Nothing here is persisted. :meth:`Taxonomy.rebuild` runs after every catalog
load, so a value struck out with :meth:`Taxonomy.remove` only stays hidden
until the next refresh.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from . import log
from .constants import TaxonomyKind
from .data_manager import ProductRow


def _distinct(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


@dataclass
class Taxonomy:
    """Suggestion lists for catalog forms and report filters."""

    categories: List[str] = field(default_factory=list)
    brands: List[str] = field(default_factory=list)
    models: List[str] = field(default_factory=list)

    @classmethod
    def rebuild(cls, products: Iterable[ProductRow]) -> "Taxonomy":
        products = list(products)
        return cls(
            categories=_distinct(product.category for product in products),
            brands=_distinct(product.brand for product in products),
            models=_distinct(product.model_name for product in products),
        )

    def values(self, kind: TaxonomyKind) -> List[str]:
        if kind is TaxonomyKind.CATEGORY:
            return self.categories
        if kind is TaxonomyKind.BRAND:
            return self.brands
        return self.models

    def remove(self, kind: TaxonomyKind, value: str) -> None:
        """Strike ``value`` from the in-memory list; products are untouched."""

        kept = [existing for existing in self.values(kind) if existing != value]
        if kind is TaxonomyKind.CATEGORY:
            self.categories = kept
        elif kind is TaxonomyKind.BRAND:
            self.brands = kept
        else:
            self.models = kept
        log.info("Removed %s '%s' from suggestions until the next reload", kind.value, value)


def brands_for_category(products: Sequence[ProductRow], category: Optional[str], fallback: Sequence[str]) -> List[str]:
    """Brands already used within ``category``, sorted.

    Falls back to ``fallback`` when no category is chosen or the category has
    no products yet, so a new category can reuse existing brands.
    """

    if not category:
        return list(fallback)
    matches = sorted({product.brand for product in products if product.category == category})
    return matches or list(fallback)


def models_for(
    products: Sequence[ProductRow],
    category: Optional[str],
    brand: Optional[str],
    fallback: Sequence[str],
) -> List[str]:
    """Model names matching the chosen category and/or brand, sorted."""

    if not category and not brand:
        return list(fallback)
    matches = sorted(
        {
            product.model_name
            for product in products
            if (not category or product.category == category) and (not brand or product.brand == brand)
        }
    )
    return matches or list(fallback)
