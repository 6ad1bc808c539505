from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .db import Base

DEFAULT_LOCATION = "N/A"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    # role column for simple RBAC: 'admin' or 'cashier'
    role = Column(String(20), nullable=False, default="admin")


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    # Sales decrement stock by name, so names are unique
    name = Column(String(100), nullable=False, unique=True, index=True)
    price = Column(Numeric(12, 2), nullable=False)
    # No floor: concurrent or ad-hoc sales may drive stock below zero
    stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=5)
    category = Column(String(50), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    image = Column(Text, nullable=False, default="")
    last_updated = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    total = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(30), nullable=False)
    dine_type = Column(String(30), nullable=False)
    location = Column(String(100), nullable=False, default=DEFAULT_LOCATION)
    created_at = Column(DateTime, nullable=False, default=datetime.now, index=True)

    items = relationship(
        "TransactionItem",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionItem.id",
    )


class TransactionItem(Base):
    __tablename__ = "transaction_items"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    # Plain column, not a foreign key: ad-hoc items have no catalog entry and
    # deleting a menu item must not touch sales history. NULL means unresolved.
    menu_item_id = Column(Integer, nullable=True)
    menu_name = Column(String(100), nullable=False, index=True)
    price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    transaction = relationship("Transaction", back_populates="items")
