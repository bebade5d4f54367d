from __future__ import annotations
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .common import CamelModel, ZERO, gen_id
from .client import Client, CompanyInfo
from .product import Product, Trade

DEFAULT_TITLE = "DEVIS"


class QuoteSection(CamelModel):
    id: str = Field(default_factory=gen_id)
    name: str
    order: int = 0


class QuoteItem(CamelModel):
    id: str = Field(default_factory=gen_id)
    section_id: str
    product: Product
    quantity: Decimal = Decimal("1")
    # prix et unité figés à l'ajout, éditables ensuite
    unit_price: Decimal = ZERO
    unit: str = ""
    description: Optional[str] = None
    included: bool = True

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def name(self) -> str:
        return self.product.name


class Quote(CamelModel):
    id: str = Field(default_factory=gen_id)
    number: str = ""
    title: str = DEFAULT_TITLE
    date: str = ""
    valid_until: str = ""
    trade: Trade
    client: Client = Field(default_factory=Client)
    company_info: CompanyInfo = Field(default_factory=CompanyInfo)
    sections: List[QuoteSection] = Field(default_factory=list)
    items: List[QuoteItem] = Field(default_factory=list)
    labor_hours: Decimal = ZERO
    labor_rate: Decimal = ZERO
    labor_visible: bool = True
    margin_percent: Decimal = ZERO
    discount_percent: Decimal = ZERO
    tva_rate: Decimal = ZERO
    notes: str = ""

    # helpers
    def get_section(self, section_id: str) -> Optional[QuoteSection]:
        return next((s for s in self.sections if s.id == section_id), None)

    def get_item(self, item_id: str) -> Optional[QuoteItem]:
        return next((it for it in self.items if it.id == item_id), None)

    def has_section(self, section_id: str) -> bool:
        return self.get_section(section_id) is not None


class QuoteCalculations(CamelModel):
    subtotal_products: Decimal = ZERO
    labor_cost: Decimal = ZERO
    subtotal_ht: Decimal = Field(default=ZERO, alias="subtotalHT")
    margin: Decimal = ZERO
    subtotal_with_margin: Decimal = ZERO
    discount: Decimal = ZERO
    total_ht: Decimal = Field(default=ZERO, alias="totalHT")
    tva: Decimal = ZERO
    total_ttc: Decimal = Field(default=ZERO, alias="totalTTC")


# ---------- Mises à jour partielles ---------- #
# Seuls les champs réellement modifiables figurent ici : `total` reste dérivé.

class ItemUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    quantity: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    unit: Optional[str] = None
    description: Optional[str] = None
    included: Optional[bool] = None
    section_id: Optional[str] = None


class QuoteUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    number: Optional[str] = None
    title: Optional[str] = None
    date: Optional[str] = None
    valid_until: Optional[str] = None
    client: Optional[Client] = None
    company_info: Optional[CompanyInfo] = None
    labor_hours: Optional[Decimal] = None
    labor_rate: Optional[Decimal] = None
    labor_visible: Optional[bool] = None
    margin_percent: Optional[Decimal] = None
    discount_percent: Optional[Decimal] = None
    tva_rate: Optional[Decimal] = None
    notes: Optional[str] = None
