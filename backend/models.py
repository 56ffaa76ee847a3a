"""
Pydantic models for request/response validation.
"""
import math

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import ClassVar, List, Optional

from domain.constants import LEGACY_SIZE_LABELS, MAX_UNIT_PRICE
from domain.enums import CartCategory


class ApiModel(BaseModel):
    """Shared base — allows construction by Python name or camelCase alias."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# ── Checkout Models ─────────────────────────────────────────────────

class CartItem(ApiModel):
    """One cart line as sent by the storefront."""
    title: str = Field(..., min_length=1, max_length=300)
    size: str = Field("", max_length=50)
    category: Optional[CartCategory] = None
    quantity: int = Field(1, ge=1, le=100)
    price: float = Field(0, ge=0, le=MAX_UNIT_PRICE, description="Unit price, used only for category=other")
    image_url: str = Field("", alias="imageUrl", max_length=1000)

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value):
        """Blank means "unset"; unrecognized labels are priced as ``other``."""
        if isinstance(value, str):
            value = value.strip().lower()
            if not value:
                return None
            if value not in {c.value for c in CartCategory}:
                return CartCategory.OTHER
        return value

    @field_validator("price", mode="before")
    @classmethod
    def _numeric_price(cls, value):
        """Non-numeric and non-finite prices count as zero."""
        if isinstance(value, bool):
            return 0
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError):
            return 0
        return number if math.isfinite(number) else 0

    @property
    def resolved_category(self) -> CartCategory:
        """
        First canvas class matched by size label or category, in the order
        standard, pair, triple; anything else is ``other``.
        """
        by_size = LEGACY_SIZE_LABELS.get(self.size.strip())
        for canvas in (CartCategory.STANDARD, CartCategory.PAIR, CartCategory.TRIPLE):
            if by_size == canvas.value or self.category is canvas:
                return canvas
        return CartCategory.OTHER


class CustomerDetails(ApiModel):
    """
    Shipping/contact block. Required fields are enforced by the checkout
    service so a blank value yields the same 400 as a missing one.
    """
    model_config = ConfigDict(populate_by_name=True, from_attributes=True, str_strip_whitespace=True)

    fullname: str = ""
    phone: str = ""
    city: str = ""
    street: str = ""
    house_number: str = Field("", alias="houseNumber")
    email: str = ""
    zip: str = ""
    notes: str = ""

    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ("fullname", "phone", "city", "street", "house_number")

    def missing_fields(self) -> List[str]:
        return [
            type(self).model_fields[name].alias or name
            for name in self.REQUIRED_FIELDS
            if not getattr(self, name)
        ]


class CheckoutRequest(ApiModel):
    """Body of POST /checkout."""
    customer_details: CustomerDetails = Field(..., alias="customerDetails")
    cart: List[CartItem] = Field(default_factory=list, max_length=100)
    source: str = Field("site", max_length=50)
    section: str = Field("", max_length=100)


class Totals(ApiModel):
    """Priced breakdown of a cart."""
    standard_qty: int = Field(0, alias="standardQty")
    pair_qty: int = Field(0, alias="pairQty")
    triple_qty: int = Field(0, alias="tripleQty")
    standard_subtotal: float = Field(0, alias="standardSubtotal")
    pair_subtotal: float = Field(0, alias="pairSubtotal")
    triple_subtotal: float = Field(0, alias="tripleSubtotal")
    other_subtotal: float = Field(0, alias="otherSubtotal")
    subtotal: float = 0
    shipping: float = 0
    total: float = 0


class ReturnUrls(ApiModel):
    success_url: str = Field(..., alias="successUrl")
    failure_url: str = Field(..., alias="failureUrl")
    cancel_url: str = Field(..., alias="cancelUrl")


class CheckoutResponse(ApiModel):
    ok: bool = True
    payment_url: str = Field(..., alias="paymentUrl")
    order_id: str = Field(..., alias="orderId")
    totals: Totals
    redirects: ReturnUrls


class ConfirmResponse(ApiModel):
    ok: bool = True
    order_id: str = Field(..., alias="orderId")
    success: bool
    status: str


class OrderStatusResponse(ApiModel):
    ok: bool = True
    order_id: str = Field(..., alias="orderId")
    status: str
    admin_mail_sent: bool = Field(..., alias="adminMailSent")
    customer_mail_sent: bool = Field(..., alias="customerMailSent")
    admin_mail_error: str = Field("", alias="adminMailError")
    customer_mail_error: str = Field("", alias="customerMailError")
