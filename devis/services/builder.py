from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from devis.config import Settings
from devis.models.client import CompanyInfo
from devis.models.product import Product, Trade
from devis.models.quote import ItemUpdate, Quote, QuoteCalculations, QuoteUpdate
from devis.services import quote_service as qs
from devis.services.calculation import calculate
from devis.services.catalog_service import CatalogService
from devis.storage.quote_storage import QuoteStorage

log = logging.getLogger(__name__)


class HistoryEntry(BaseModel):
    id: str
    number: str
    title: str
    client_name: str
    date: str
    total_ttc: Decimal


class QuoteBuilderSession:
    """
    Session d'édition : détient le devis actif (seul écrivain).
    Après chaque modification : recalcul puis sauvegarde "best effort"
    (éventuellement sur un executor). Chaque sauvegarde porte un numéro
    croissant : une sauvegarde plus ancienne que la dernière écrite est abandonnée.
    """

    def __init__(
        self,
        storage: QuoteStorage,
        settings: Optional[Settings] = None,
        catalog: Optional[CatalogService] = None,
        executor: Optional[Executor] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.storage = storage
        self.settings = settings or Settings()
        self.catalog = catalog or CatalogService(storage)
        self.executor = executor
        self._today = today or date.today
        self.quote: Optional[Quote] = None
        self.calculations: Optional[QuoteCalculations] = None
        self._save_lock = threading.Lock()
        self._save_seq = 0
        self._saved_seq = 0

    # ----- état ----- #

    def _set(self, quote: Quote) -> Quote:
        changed = quote is not self.quote
        self.quote = quote
        self.calculations = calculate(quote)
        if changed:
            self._persist(quote)
        return quote

    def _next_seq(self) -> int:
        with self._save_lock:
            self._save_seq += 1
            return self._save_seq

    def _save(self, seq: int, quote: Quote) -> None:
        # verrou tenu pendant l'écriture : deux sauvegardes ne se croisent jamais
        with self._save_lock:
            if seq < self._saved_seq:
                log.debug("sauvegarde %s dépassée, ignorée", seq)
                return
            self._saved_seq = seq
            self.storage.save_current_quote(quote)

    def _persist(self, quote: Quote) -> None:
        seq = self._next_seq()
        if self.executor is None:
            self._save(seq, quote)
            return
        try:
            self.executor.submit(self._save, seq, quote)
        except RuntimeError as e:
            # executor arrêté
            log.warning("sauvegarde différée impossible: %s", e)
            self._save(seq, quote)

    def _clear_current(self) -> None:
        seq = self._next_seq()
        with self._save_lock:
            self._saved_seq = seq
            self.storage.clear_current_quote()

    def _apply(self, fn: Callable[..., Quote], *args: Any) -> Optional[Quote]:
        if self.quote is None:
            return None
        return self._set(fn(self.quote, *args))

    @property
    def trade(self) -> Optional[Trade]:
        return self.quote.trade if self.quote else None

    # ----- cycle de vie ----- #

    def select_trade(self, trade: Trade) -> Quote:
        quote = qs.create_empty_quote(
            trade,
            self.storage.next_quote_number(),
            self.settings,
            today=self._today(),
            company_info=self.storage.load_company_profile(),
        )
        return self._set(quote)

    def resume(self) -> Optional[Quote]:
        quote = self.storage.load_current_quote()
        if quote is None:
            return None
        self.quote = quote
        self.calculations = calculate(quote)
        return quote

    def archive(self) -> None:
        if self.quote is not None:
            self.storage.append_or_replace_in_history(self.quote)

    def new_quote(self) -> None:
        """Fige le devis actif dans l'historique et libère l'emplacement courant."""
        self.archive()
        self._clear_current()
        self.quote = None
        self.calculations = None

    def open_from_history(self, quote_id: str) -> Optional[Quote]:
        quote = self.storage.get_from_history(quote_id)
        if quote is None:
            return None
        return self._set(quote)

    def duplicate_from_history(self, quote_id: str) -> Optional[Quote]:
        src = self.storage.get_from_history(quote_id)
        if src is None:
            return None
        dup = qs.duplicate_quote(
            src,
            self.storage.next_quote_number(),
            today=self._today(),
            validity_days=self.settings.validity_days,
        )
        self.storage.append_or_replace_in_history(dup)
        return dup

    def delete_from_history(self, quote_id: str) -> None:
        self.storage.delete_from_history(quote_id)

    def history_summaries(self) -> List[HistoryEntry]:
        out: List[HistoryEntry] = []
        for q in self.storage.list_history():
            out.append(HistoryEntry(
                id=q.id,
                number=q.number,
                title=q.title,
                client_name=q.client.name,
                date=q.date,
                total_ttc=calculate(q).total_ttc,
            ))
        return out

    # ----- entreprise ----- #

    def save_company_profile(self, info: CompanyInfo) -> None:
        self.storage.save_company_profile(info)
        self._apply(qs.update_quote, QuoteUpdate(company_info=info))

    # ----- mutations ----- #

    def add_product(self, product: Product, quantity: Any, section_id: str) -> Optional[Quote]:
        return self._apply(qs.add_product, product, quantity, section_id)

    def add_catalog_product(self, product_id: str, quantity: Any, section_id: str) -> Optional[Quote]:
        if self.quote is None:
            return None
        product = self.catalog.get_product(self.quote.trade, product_id)
        if product is None:
            return self.quote
        return self.add_product(product, quantity, section_id)

    def add_free_item(self, section_id: str, name: str, unit_price: Any,
                      unit: str = "", quantity: Any = 1) -> Optional[Quote]:
        if not (name or "").strip():
            return self.quote
        return self._apply(qs.add_free_item, section_id, name, unit_price, unit, quantity)

    def update_item(self, item_id: str, updates: ItemUpdate | Dict[str, Any]) -> Optional[Quote]:
        return self._apply(qs.update_item, item_id, updates)

    def remove_item(self, item_id: str) -> Optional[Quote]:
        return self._apply(qs.remove_item, item_id)

    def add_section(self, name: str, order: Optional[int] = None) -> Optional[Quote]:
        return self._apply(qs.add_section, name, order)

    def rename_section(self, section_id: str, new_name: str) -> Optional[Quote]:
        return self._apply(qs.rename_section, section_id, new_name)

    def delete_section(self, section_id: str) -> Optional[Quote]:
        return self._apply(qs.delete_section, section_id)

    def move_section(self, section_id: str, offset: int) -> Optional[Quote]:
        return self._apply(qs.move_section, section_id, offset)

    def update_quote(self, updates: QuoteUpdate | Dict[str, Any]) -> Optional[Quote]:
        return self._apply(qs.update_quote, updates)
