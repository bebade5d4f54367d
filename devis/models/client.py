from __future__ import annotations
from typing import Optional

from .common import CamelModel


class Client(CamelModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""

    def city_line(self) -> str:
        return f"{self.postal_code} {self.city}".strip()


class CompanyInfo(Client):
    siret: Optional[str] = None
    # data URL (base64) ou chemin de fichier
    logo: Optional[str] = None
