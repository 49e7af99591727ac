import random
import string
import uuid
from typing import Optional, List
from datetime import datetime, timezone
from sqlmodel import Field, SQLModel, Relationship


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_sku() -> str:
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"SKU-{suffix}"


# --- User Model ---
class User(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    username: str = Field(index=True, unique=True)
    password_hash: str  # bcrypt hash, never the plain password
    role: str = Field(default="staff")  # admin, staff
    created_at: datetime = Field(default_factory=utcnow)

# --- Product Model ---
class Product(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    sku: str = Field(default_factory=generate_sku, unique=True, index=True)
    category: str = Field(default="General")
    price: float = Field(default=0.0, ge=0)
    quantity: int = Field(default=0, ge=0)
    image_url: str = Field(default="")
    created_at: datetime = Field(default_factory=utcnow)

# --- Sale Models (Header & Detail) ---
class Sale(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    total_amount: float = Field(default=0.0)
    created_at: datetime = Field(default_factory=utcnow, index=True)

    # Staff identity is copied, not joined, so the ledger survives user removal
    staff_id: Optional[str] = Field(default=None, index=True)
    staff_username: Optional[str] = None

    items: List["SaleItem"] = Relationship(
        back_populates="sale",
        sa_relationship_kwargs={"order_by": "SaleItem.position", "cascade": "all, delete-orphan"},
    )

class SaleItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    sale_id: Optional[str] = Field(default=None, foreign_key="sale.id", index=True)
    position: int = Field(default=0)

    # No foreign key: deleting a product must leave past sales untouched
    product_id: str = Field(index=True)

    # Snapshot in case product name, sku or price changes
    name: str
    sku: str
    qty: int
    price: float
    line_total: float

    sale: Optional[Sale] = Relationship(back_populates="items")
