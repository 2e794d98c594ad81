"""
Cart API Pydantic Models

Request bodies for the cart endpoints. The catalog is an external
collaborator, so the add payload carries everything captured at add time.
"""
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from findora.cart import CartItem, SellerInfo, VariantInfo
from findora.cart.models import MAX_LINE_QUANTITY
from findora.services.money import MAX_PRICE_DIGITS


class SellerPayload(BaseModel):
    id: str
    business_name: str


class VariantPayload(BaseModel):
    id: str
    name: str
    value: str


class AddToCartRequest(BaseModel):
    id: str = Field(min_length=1)
    product_id: str = Field(min_length=1)
    name: str
    slug: str
    price: Decimal = Field(ge=0, max_digits=MAX_PRICE_DIGITS)
    compare_at_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=MAX_PRICE_DIGITS)
    max_quantity: int = Field(ge=0, le=MAX_LINE_QUANTITY)  # Current stock; 0 means sold out
    image: Optional[str] = None
    seller: Optional[SellerPayload] = None
    variant: Optional[VariantPayload] = None
    quantity: int = 1

    def to_cart_item(self) -> CartItem:
        return CartItem(
            id=self.id,
            product_id=self.product_id,
            name=self.name,
            slug=self.slug,
            price=self.price,
            max_quantity=self.max_quantity,
            compare_at_price=self.compare_at_price,
            image=self.image,
            seller=SellerInfo(self.seller.id, self.seller.business_name) if self.seller else None,
            variant=(
                VariantInfo(self.variant.id, self.variant.name, self.variant.value)
                if self.variant else None
            ),
        )


class UpdateCartItemRequest(BaseModel):
    quantity: int  # 0 or less removes the line


class UpdateShippingRequest(BaseModel):
    amount: Decimal = Field(ge=0)


class ApplyDiscountRequest(BaseModel):
    amount: Decimal = Field(ge=0)
    code: Optional[str] = Field(default=None, max_length=64)
