"""
Database Schemas for the Checkout API

Each Pydantic model represents a collection in MongoDB.
Collection name is the lowercase class name.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class OrderStatus(str, Enum):
    PENDING = "Pending"
    CREATED = "Created"
    PAID = "Paid"
    FAILED = "Failed"


OPEN_STATUSES = [OrderStatus.PENDING.value, OrderStatus.CREATED.value]


class LineItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    product_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("product_id", "productId", "id"),
        description="Storefront product reference",
    )
    name: str = Field(..., min_length=1, description="Display name")
    size: Optional[str] = Field(None, description="Size/variant label")
    quantity: int = Field(1, ge=1, validation_alias=AliasChoices("quantity", "qty"))
    price: float = Field(..., ge=0, allow_inf_nan=False, description="Unit price in major currency units")
    image: Optional[str] = Field(None, description="Image URL")


class OrderSummary(BaseModel):
    subtotal: float = Field(..., ge=0, allow_inf_nan=False)
    shipping: float = Field(0, ge=0, allow_inf_nan=False, validation_alias=AliasChoices("shipping", "shippingCost"))
    total: float = Field(..., gt=0, allow_inf_nan=False, validation_alias=AliasChoices("total", "grandTotal"))

    @model_validator(mode="after")
    def _total_adds_up(self) -> "OrderSummary":
        # one minor unit of slack for float rounding on the storefront
        if abs(self.subtotal + self.shipping - self.total) > 0.01:
            raise ValueError("summary total must equal subtotal + shipping")
        return self


class CustomerDetails(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    postal_code: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("postal_code", "postalCode", "pincode"),
    )

    @field_validator("email")
    @classmethod
    def _looks_like_email(cls, v: str) -> str:
        v = v.strip()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("invalid email address")
        return v


class Order(BaseModel):
    order_id: str = Field(..., description="Gateway order id (unique)")
    receipt: str
    payment_id: Optional[str] = None
    signature: Optional[str] = None
    items: List[LineItem]
    subtotal: Optional[float] = None
    shipping: Optional[float] = None
    total: float = Field(..., gt=0, description="Grand total in major units")
    amount: int = Field(..., gt=0, description="Gateway-confirmed amount in minor units")
    currency: str
    customer: CustomerDetails
    user_id: Optional[Any] = None
    status: OrderStatus = OrderStatus.PENDING

    def to_document(self) -> dict:
        doc = self.model_dump()
        doc["status"] = self.status.value
        return doc


class User(BaseModel):
    google_id: str = Field(..., description="Identity provider subject id (unique)")
    email: str = Field(..., description="Email address (unique)")
    name: Optional[str] = None
    picture: Optional[str] = Field(None, description="Avatar URL")
    last_login: Optional[datetime] = None


# These schemas are used for validation/documentation by the database viewer and backend.
