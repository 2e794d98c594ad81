"""
Pydantic schemas for the persisted cart record.

The durable store holds a JSON array of camelCase line dicts. A record is
only replayed if every entry validates here; otherwise it is discarded.
"""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel

from findora.services.money import MAX_PRICE_DIGITS
from .models import CartItem, MAX_LINE_QUANTITY


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SellerRecord(_CamelModel):
    id: str
    business_name: str


class VariantRecord(_CamelModel):
    id: str
    name: str
    value: str


class CartItemRecord(_CamelModel):
    id: str = Field(min_length=1)
    product_id: str = Field(min_length=1)
    name: str
    slug: str
    price: Decimal = Field(ge=0, max_digits=MAX_PRICE_DIGITS)
    compare_at_price: Optional[Decimal] = Field(
        default=None, ge=0, max_digits=MAX_PRICE_DIGITS
    )
    quantity: int = Field(ge=1, le=MAX_LINE_QUANTITY)
    max_quantity: int = Field(ge=1, le=MAX_LINE_QUANTITY)
    image: Optional[str] = None
    seller: Optional[SellerRecord] = None
    variant: Optional[VariantRecord] = None

    @model_validator(mode="after")
    def quantity_within_stock(self) -> "CartItemRecord":
        if self.quantity > self.max_quantity:
            raise ValueError("quantity exceeds maxQuantity")
        return self

    def to_cart_item(self) -> CartItem:
        return CartItem.from_dict(self.model_dump(by_alias=True, exclude_none=True))


cart_record_adapter = TypeAdapter(List[CartItemRecord])
