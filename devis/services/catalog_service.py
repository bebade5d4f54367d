from __future__ import annotations

import logging
from typing import Any, List, Optional

from devis.models.common import gen_id, to_decimal
from devis.models.product import CUSTOM_CATEGORY, CUSTOM_PREFIX, Product, Trade
from devis.services.builtin_catalog import BUILTIN_PRODUCTS
from devis.storage.quote_storage import QuoteStorage

log = logging.getLogger(__name__)

ALL_CATEGORIES = "all"


class CatalogService:
    """
    Catalogue par métier : produits intégrés + produits personnalisés (custom-*).
    Le catalogue n'est jamais modifié par le devis : les lignes copient prix et unité.
    """

    def __init__(self, storage: QuoteStorage) -> None:
        self.storage = storage

    # ---------- Lecture ---------- #

    def products_for_trade(self, trade: Trade) -> List[Product]:
        return [*BUILTIN_PRODUCTS.get(trade, []), *self.storage.list_custom_products(trade)]

    def categories_for_trade(self, trade: Trade) -> List[str]:
        seen: List[str] = []
        for p in self.products_for_trade(trade):
            if p.category and p.category not in seen:
                seen.append(p.category)
        return seen

    def search(self, trade: Trade, text: str = "", category: Optional[str] = None) -> List[Product]:
        needle = (text or "").strip().casefold()
        out: List[Product] = []
        for p in self.products_for_trade(trade):
            if category not in (None, "", ALL_CATEGORIES) and p.category != category:
                continue
            if needle and needle not in p.name.casefold():
                continue
            out.append(p)
        return out

    def get_product(self, trade: Trade, product_id: str) -> Optional[Product]:
        return next((p for p in self.products_for_trade(trade) if p.id == product_id), None)

    @staticmethod
    def is_custom(product_id: str) -> bool:
        return (product_id or "").startswith(CUSTOM_PREFIX)

    # ---------- Produits personnalisés ---------- #

    def create_custom_product(
        self,
        trade: Trade,
        name: str,
        unit_price: Any,
        unit: str = "unité",
        category: str = "",
    ) -> Optional[Product]:
        label = (name or "").strip()
        if not label:
            return None
        product = Product(
            id=f"{CUSTOM_PREFIX}{gen_id()}",
            name=label,
            category=(category or "").strip() or CUSTOM_CATEGORY,
            unit_price=to_decimal(unit_price),
            unit=unit or "",
            trade=trade,
        )
        self.storage.save_custom_product(product)
        return product

    def update_custom_product(self, product: Product, **changes: Any) -> Optional[Product]:
        if not self.is_custom(product.id):
            log.info("produit intégré non modifiable: %s", product.id)
            return None
        if "name" in changes:
            changes["name"] = (changes["name"] or "").strip()
            if not changes["name"]:
                return None
        if "unit_price" in changes:
            changes["unit_price"] = max(to_decimal(changes["unit_price"]), to_decimal(0))
        if "category" in changes:
            changes["category"] = (changes["category"] or "").strip() or CUSTOM_CATEGORY
        updated = Product.model_validate({**product.model_dump(), **changes})
        self.storage.save_custom_product(updated)
        return updated

    def delete_custom_product(self, product_id: str) -> None:
        if self.is_custom(product_id):
            self.storage.delete_custom_product(product_id)
