from __future__ import annotations
from decimal import Decimal
import uuid

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def gen_id() -> str:
    return str(uuid.uuid4())


def to_decimal(v, default: Decimal = ZERO) -> Decimal:
    """Accepte int/float/str ("18,50" compris) ; valeur illisible ou non finie -> default."""
    if v is None or v == "":
        return default
    if isinstance(v, Decimal):
        return v if v.is_finite() else default
    try:
        d = Decimal(str(v).strip().replace(",", "."))
    except Exception:
        return default
    return d if d.is_finite() else default


class CamelModel(BaseModel):
    """Base des entités persistées : clés JSON en camelCase, anciennes clés ignorées."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
