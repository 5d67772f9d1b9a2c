from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class Medicine(APIModel):
    id: str = Field(alias="_id")
    name: str = ""
    price: Decimal = Decimal(0)
    category: str | None = None
    prescription_required: bool = False


class Pagination(APIModel):
    current: int = 1
    pages: int = 1
    total: int = 0
    has_next: bool = False
    has_prev: bool = False


class CatalogPage(APIModel):
    medicines: list[Medicine] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class CartItem(APIModel):
    # None when the medicine was deleted after it was added to the cart.
    medicine: Medicine | str | None
    price: Decimal
    quantity: int = Field(ge=1)

    @property
    def product_id(self) -> str:
        if isinstance(self.medicine, Medicine):
            return self.medicine.id
        return self.medicine or ""


class Cart(APIModel):
    items: list[CartItem] = Field(default_factory=list)
    total_items: int = 0
    total_amount: Decimal = Decimal(0)


class LabBooking(APIModel):
    id: str | None = Field(default=None, alias="_id")
    appointment_date: str | None = None
    time_slot: str | None = None
    status: str | None = None


class Order(APIModel):
    id: str = Field(alias="_id")
    status: str | None = None
    total_amount: Decimal | None = None


class Notification(APIModel):
    id: str = Field(alias="_id")
    title: str = ""
    message: str = ""
    type: str | None = None
    priority: str | None = None
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime | None = None


__all__ = [
    "APIModel",
    "Cart",
    "CartItem",
    "CatalogPage",
    "LabBooking",
    "Medicine",
    "Notification",
    "Order",
    "Pagination",
]
