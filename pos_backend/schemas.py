from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict


# Integer columns are 32-bit on MySQL
MAX_INT = 2 ** 31 - 1


class Role(str, Enum):
    ADMIN = "admin"
    CASHIER = "cashier"


# -------------------- Users --------------------

class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)
    role: Role = Role.ADMIN


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserRead(BaseModel):
    id: int
    username: str
    role: str

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    token: str
    user: UserRead


# -------------------- Menu --------------------

class MenuItemCreate(BaseModel):
    """Full field set for creating or replacing a menu item."""

    name: str = Field(..., min_length=1, max_length=100)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    stock: int = Field(..., ge=-MAX_INT, le=MAX_INT)
    min_stock: int = Field(default=5, alias="minStock", ge=0, le=MAX_INT)
    category: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = ""
    image: Optional[str] = ""

    model_config = ConfigDict(populate_by_name=True)


class MenuItemRead(BaseModel):
    id: int
    name: str
    price: Decimal
    stock: int
    min_stock: int
    category: str
    description: str
    image: str
    last_updated: datetime

    model_config = ConfigDict(from_attributes=True)


# -------------------- Sales --------------------

class CartItem(BaseModel):
    id: Optional[int] = Field(default=None, ge=0, le=MAX_INT)
    name: str = Field(..., min_length=1, max_length=100)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)

    @field_validator("id")
    def unresolved_id(cls, v: Optional[int]):
        # Clients send 0 or omit the id for items that are not in the catalog
        return v or None

    @field_validator("name")
    def stock_key(cls, v: str):
        # Must match the stripped name stored on the menu item
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class SaleCreate(BaseModel):
    # Any quantity sent per line is ignored: every cart entry is one unit
    items: List[CartItem] = Field(..., min_length=1)
    total: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    method: str = Field(..., min_length=1, max_length=30)
    dine_type: str = Field(..., alias="dineType", min_length=1, max_length=30)
    location: Optional[str] = Field(default=None, max_length=100)

    model_config = ConfigDict(populate_by_name=True)


class TransactionItemRead(BaseModel):
    id: int
    transaction_id: int
    menu_item_id: Optional[int] = None
    menu_name: str
    price: Decimal
    quantity: int

    model_config = ConfigDict(from_attributes=True)


class TransactionRead(BaseModel):
    id: int
    total: Decimal
    payment_method: str
    dine_type: str
    location: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionSummary(TransactionRead):
    items_summary: Optional[str] = None


class TransactionDetail(TransactionRead):
    items: List[TransactionItemRead] = []
