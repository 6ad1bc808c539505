import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from . import auth, models, schemas
from .utils import sanitize_text

logger = logging.getLogger(__name__)


class SaleError(Exception):
    """A sale could not be recorded. Nothing from the attempt was persisted."""


# -------------------- Users --------------------

def create_user(db: Session, user: schemas.UserCreate) -> models.User:
    db_user = models.User(
        username=user.username,
        password_hash=auth.hash_password(user.password),
        role=user.role.value,
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValueError("username already exists") from e
    db.refresh(db_user)
    return db_user


def get_user_by_username(db: Session, username: str) -> Optional[models.User]:
    return db.scalar(select(models.User).where(models.User.username == username))


def authenticate(db: Session, username: str, password: str) -> Optional[models.User]:
    user = get_user_by_username(db, username)
    if not user or not auth.verify_password(password, user.password_hash):
        logger.info("failed login for %r", username)
        return None
    return user


# -------------------- Menu --------------------

def list_menu_items(db: Session) -> List[models.MenuItem]:
    return db.query(models.MenuItem).order_by(models.MenuItem.name).all()


def get_menu_item(db: Session, item_id: int) -> Optional[models.MenuItem]:
    return db.get(models.MenuItem, item_id)


def _apply_menu_fields(db_item: models.MenuItem, item: schemas.MenuItemCreate) -> None:
    db_item.name = item.name.strip()
    db_item.price = item.price
    db_item.stock = item.stock
    db_item.min_stock = item.min_stock
    db_item.category = sanitize_text(item.category)
    db_item.description = sanitize_text(item.description)
    db_item.image = sanitize_text(item.image)


def create_menu_item(db: Session, item: schemas.MenuItemCreate) -> models.MenuItem:
    db_item = models.MenuItem()
    _apply_menu_fields(db_item, item)
    db.add(db_item)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValueError("menu item name already exists") from e
    db.refresh(db_item)
    return db_item


def update_menu_item(db: Session, item_id: int, item: schemas.MenuItemCreate) -> Optional[models.MenuItem]:
    db_item = db.get(models.MenuItem, item_id)
    if not db_item:
        return None
    _apply_menu_fields(db_item, item)
    db_item.last_updated = datetime.now()
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValueError("menu item name already exists") from e
    db.refresh(db_item)
    return db_item


def delete_menu_item(db: Session, item_id: int) -> bool:
    db_item = db.get(models.MenuItem, item_id)
    if not db_item:
        return False
    db.delete(db_item)
    db.commit()
    return True


# -------------------- Sales --------------------

def record_sale(db: Session, payload) -> int:
    """Persist a sale: header, one line per cart entry and a stock decrement per line.

    Either everything is committed or the whole unit is rolled back. Every
    failure surfaces as :class:`SaleError`; the cause is only logged.
    Returns the new transaction id.
    """
    try:
        sale = schemas.SaleCreate.model_validate(payload)
    except ValidationError as e:
        logger.warning("rejected sale payload: %s", e)
        raise SaleError("failed to create transaction") from e

    try:
        header = models.Transaction(
            total=sale.total,
            payment_method=sale.method,
            dine_type=sale.dine_type,
            location=sanitize_text(sale.location) or models.DEFAULT_LOCATION,
        )
        db.add(header)
        db.flush()
        transaction_id = header.id

        for item in sale.items:
            db.add(models.TransactionItem(
                transaction_id=transaction_id,
                menu_item_id=item.id,
                menu_name=item.name,
                price=item.price,
                quantity=1,
            ))
            db.flush()
            db.execute(
                update(models.MenuItem)
                .where(models.MenuItem.name == item.name)
                .values(stock=models.MenuItem.stock - 1)
                .execution_options(synchronize_session=False)
            )
        db.commit()
    except (SQLAlchemyError, OverflowError) as e:
        # sqlite3 raises OverflowError for integers it cannot bind
        db.rollback()
        logger.exception("failed to record sale of %d item(s)", len(sale.items))
        raise SaleError("failed to create transaction") from e

    logger.info("recorded transaction %s: %d item(s), total %s", transaction_id, len(sale.items), sale.total)
    return transaction_id


def _items_summary(transaction: models.Transaction) -> Optional[str]:
    if not transaction.items:
        return None
    return ", ".join(f"{i.menu_name} ({i.quantity}x)" for i in transaction.items)


def list_transactions(db: Session, start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[schemas.TransactionSummary]:
    stmt = select(models.Transaction).options(selectinload(models.Transaction.items))
    # Date bounds are inclusive calendar days
    if start_date is not None:
        stmt = stmt.where(models.Transaction.created_at >= datetime.combine(start_date, time.min))
    if end_date is not None:
        stmt = stmt.where(models.Transaction.created_at < datetime.combine(end_date + timedelta(days=1), time.min))
    stmt = stmt.order_by(models.Transaction.created_at.desc(), models.Transaction.id.desc())

    results = []
    for t in db.scalars(stmt).all():
        row = schemas.TransactionSummary.model_validate(t)
        row.items_summary = _items_summary(t)
        results.append(row)
    return results


def get_transaction(db: Session, transaction_id: int) -> Optional[models.Transaction]:
    stmt = (
        select(models.Transaction)
        .options(selectinload(models.Transaction.items))
        .where(models.Transaction.id == transaction_id)
    )
    return db.scalar(stmt)
