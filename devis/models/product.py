from __future__ import annotations
from decimal import Decimal
from typing import Literal

from pydantic import Field, field_validator

from .common import CamelModel, ZERO, gen_id

Trade = Literal["electrician", "carpenter"]
TRADES: tuple[str, ...] = ("electrician", "carpenter")

CUSTOM_PREFIX = "custom-"
FREE_PREFIX = "free-"
FREE_CATEGORY = "Ligne libre"
CUSTOM_CATEGORY = "Personnalisé"

# unit, m², meter, linear-meter, flat-rate, hour, day, lot, none
UNIT_CHOICES: tuple[str, ...] = (
    "unité", "m²", "mètre", "mètre linéaire", "forfait", "heure", "jour", "lot", "",
)


class Product(CamelModel):
    id: str = Field(default_factory=gen_id)
    name: str
    category: str = ""
    unit_price: Decimal = ZERO
    unit: str = "unité"
    trade: Trade

    @field_validator("unit_price")
    @classmethod
    def _non_negative(cls, v: Decimal) -> Decimal:
        return v if v >= 0 else ZERO

    @property
    def is_custom(self) -> bool:
        return self.id.startswith(CUSTOM_PREFIX)

    @property
    def is_free(self) -> bool:
        return self.id.startswith(FREE_PREFIX)
