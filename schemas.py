"""
Request and response models for the HTTP API.

The wire format is camelCase (imageUrl, createdAt, productId, lineTotal...);
snake_case field names are accepted on input as well.
"""

from typing import Optional, List, Literal
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class TimestampedRead(APIModel):
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands timestamps back without tzinfo; they are stored as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# --- Auth ---

class RegisterRequest(APIModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    role: Optional[Literal["admin", "staff"]] = None


class LoginRequest(APIModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserRead(TimestampedRead):
    id: str
    username: str
    role: str


class LoginResponse(APIModel):
    token: str
    user: UserRead


class UserList(APIModel):
    users: List[UserRead]


# --- Products ---

class ProductCreate(APIModel):
    name: str = Field(..., min_length=1)
    sku: Optional[str] = None
    category: Optional[str] = None
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=0)
    image_url: Optional[str] = None


class ProductUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1)
    sku: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    image_url: Optional[str] = None


class ProductRead(TimestampedRead):
    id: str
    name: str
    sku: str
    category: str
    price: float
    quantity: int
    image_url: str


class ProductList(APIModel):
    products: List[ProductRead]


class ProductDeleted(APIModel):
    success: bool = True
    deleted: ProductRead


# --- Sales ---

class SaleLineRequest(APIModel):
    product_id: str
    qty: int


class SaleRequest(APIModel):
    items: List[SaleLineRequest] = Field(default_factory=list)


class SaleItemRead(APIModel):
    product_id: str
    name: str
    sku: str
    qty: int
    price: float
    line_total: float


class SaleRead(TimestampedRead):
    id: str
    items: List[SaleItemRead]
    total_amount: float
    staff_id: Optional[str] = None
    staff_username: Optional[str] = None


class SaleList(APIModel):
    sales: List[SaleRead]


# --- Stats ---

class StatsRead(APIModel):
    total_products: int
    total_stock_units: int
    total_stock_value: float
    total_earnings: float


# --- Legacy import ---

class ImportResult(APIModel):
    added: dict
    skipped: dict
    errors: List[str]
