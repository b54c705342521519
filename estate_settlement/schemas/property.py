"""Schemas for property assignments and buyers returned by the marketplace backend."""

from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, ConfigDict, Field
from pydantic.alias_generators import to_camel

from estate_settlement.schemas.common import CamelModel, Money


class SellerInfo(CamelModel):
    id: str | None = Field(default=None, validation_alias=AliasChoices("id", "_id"))
    name: str | None = None
    email: str | None = None


class Buyer(CamelModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    name: str | None = None
    email: str | None = None


class PropertyAssignment(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    title: str = ""
    address: dict[str, Any] | str | None = None
    price: Money | None = None
    status: str | None = None
    sales_status: str | None = Field(
        default=None, validation_alias=AliasChoices("salesStatus", "sales_status")
    )
    seller: SellerInfo | None = None

    @property
    def display_address(self) -> str | None:
        if not self.address:
            return None
        if isinstance(self.address, str):
            return self.address
        parts = [
            self.address.get(key)
            for key in ("street", "city", "state", "zipCode", "country")
        ]
        return ", ".join(str(p) for p in parts if p) or None

    @property
    def price_value(self) -> Decimal:
        return self.price if self.price is not None else Decimal(0)
