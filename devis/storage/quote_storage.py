from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, List, Optional, Protocol

from pydantic import ValidationError

from devis.models.client import CompanyInfo
from devis.models.product import Product, Trade
from devis.models.quote import Quote
from devis.storage.json_store import StoreError

log = logging.getLogger(__name__)

CURRENT_QUOTE_KEY = "current_quote"
HISTORY_KEY = "quote_history"
COUNTER_KEY = "quote_number_counter"
COMPANY_KEY = "company_profile"
CUSTOM_PRODUCTS_KEY = "custom_products"

# erreurs de stockage attendues : toutes rattrapées ici
_STORAGE_ERRORS = (StoreError, OSError, ValueError, TypeError)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...
    def set(self, key: str, value: Any) -> None: ...
    def delete(self, key: str) -> None: ...


class QuoteStorage:
    """
    Adaptateur de persistance "best effort" :
    une lecture en échec renvoie None / [], une écriture en échec est journalisée.
    Aucune exception ne remonte à l'appelant.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    # ----- accès bas niveau protégés ----- #

    def _read(self, key: str) -> Optional[Any]:
        try:
            return self.store.get(key)
        except _STORAGE_ERRORS as e:
            log.warning("lecture %s impossible: %s", key, e)
            return None

    def _write(self, key: str, value: Any) -> bool:
        try:
            self.store.set(key, value)
            return True
        except _STORAGE_ERRORS as e:
            log.warning("écriture %s impossible: %s", key, e)
            return False

    def _read_list(self, key: str) -> List[Any]:
        data = self._read(key)
        return data if isinstance(data, list) else []

    @staticmethod
    def _parse_quote(d: Any) -> Optional[Quote]:
        if not isinstance(d, dict):
            return None
        try:
            return Quote.model_validate(d)
        except ValidationError as e:
            log.warning("devis illisible ignoré (%s erreurs)", e.error_count())
            return None

    # ----- devis courant ----- #

    def load_current_quote(self) -> Optional[Quote]:
        return self._parse_quote(self._read(CURRENT_QUOTE_KEY))

    def save_current_quote(self, quote: Quote) -> None:
        self._write(CURRENT_QUOTE_KEY, quote.to_record())

    def clear_current_quote(self) -> None:
        try:
            self.store.delete(CURRENT_QUOTE_KEY)
        except _STORAGE_ERRORS as e:
            log.warning("suppression %s impossible: %s", CURRENT_QUOTE_KEY, e)

    # ----- historique ----- #

    def list_history(self) -> List[Quote]:
        out: List[Quote] = []
        for d in self._read_list(HISTORY_KEY):
            q = self._parse_quote(d)
            if q is not None:
                out.append(q)
        return out

    def get_from_history(self, quote_id: str) -> Optional[Quote]:
        return next((q for q in self.list_history() if q.id == quote_id), None)

    def append_or_replace_in_history(self, quote: Quote) -> None:
        """Met à jour si le devis existe (même id), sinon l'ajoute en tête."""
        rows = self._read_list(HISTORY_KEY)
        record = quote.to_record()
        for idx, r in enumerate(rows):
            if isinstance(r, dict) and r.get("id") == quote.id:
                rows[idx] = record
                break
        else:
            rows.insert(0, record)
        self._write(HISTORY_KEY, rows)

    def delete_from_history(self, quote_id: str) -> None:
        rows = self._read_list(HISTORY_KEY)
        kept = [r for r in rows if not (isinstance(r, dict) and r.get("id") == quote_id)]
        if len(kept) != len(rows):
            self._write(HISTORY_KEY, kept)

    # ----- profil entreprise ----- #

    def load_company_profile(self) -> Optional[CompanyInfo]:
        d = self._read(COMPANY_KEY)
        if not isinstance(d, dict):
            return None
        try:
            return CompanyInfo.model_validate(d)
        except ValidationError:
            log.warning("profil entreprise illisible")
            return None

    def save_company_profile(self, info: CompanyInfo) -> None:
        self._write(COMPANY_KEY, info.to_record())

    # ----- numérotation ----- #

    def next_quote_number(self, now: Optional[datetime] = None) -> str:
        """DEV-{année}{mois}-{compteur sur 3 chiffres}, compteur global persistant."""
        now = now or datetime.now()
        raw = self._read(COUNTER_KEY)
        try:
            counter = int(raw or 0) + 1
        except (TypeError, ValueError):
            counter = 1
        if not self._write(COUNTER_KEY, counter):
            return f"DEV-{int(time.time() * 1000)}"
        return f"DEV-{now.year}{now.month:02d}-{counter:03d}"

    # ----- produits personnalisés ----- #

    def list_custom_products(self, trade: Optional[Trade] = None) -> List[Product]:
        out: List[Product] = []
        for d in self._read_list(CUSTOM_PRODUCTS_KEY):
            try:
                p = Product.model_validate(d)
            except ValidationError:
                continue
            if trade is None or p.trade == trade:
                out.append(p)
        return out

    def save_custom_product(self, product: Product) -> None:
        rows = self._read_list(CUSTOM_PRODUCTS_KEY)
        record = product.to_record()
        for idx, r in enumerate(rows):
            if isinstance(r, dict) and r.get("id") == product.id:
                rows[idx] = record
                break
        else:
            rows.append(record)
        self._write(CUSTOM_PRODUCTS_KEY, rows)

    def delete_custom_product(self, product_id: str) -> None:
        rows = self._read_list(CUSTOM_PRODUCTS_KEY)
        kept = [r for r in rows if not (isinstance(r, dict) and r.get("id") == product_id)]
        if len(kept) != len(rows):
            self._write(CUSTOM_PRODUCTS_KEY, kept)
