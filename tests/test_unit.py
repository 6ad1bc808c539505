from decimal import Decimal

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.exc import OperationalError

from pos_backend import crud, models, schemas


def count(db_session, model) -> int:
    return db_session.scalar(select(func.count()).select_from(model))


def sale_payload(*names, total="40000"):
    prices = {"Latte": "25000", "Croissant": "15000", "Tea": "12000"}
    return {
        "items": [{"name": n, "price": prices.get(n, "1000")} for n in names],
        "total": total,
        "method": "cash",
        "dineType": "dine-in",
    }


def test_record_sale_creates_header_items_and_decrements_stock(db_session, menu, stock_of):
    transaction_id = crud.record_sale(db_session, sale_payload("Latte", "Croissant"))
    assert isinstance(transaction_id, int)

    assert count(db_session, models.Transaction) == 1
    assert count(db_session, models.TransactionItem) == 2
    assert stock_of("Latte") == 9
    assert stock_of("Croissant") == 7
    assert stock_of("Tea") == 5

    header = crud.get_transaction(db_session, transaction_id)
    assert header.total == Decimal("40000")
    assert header.location == "N/A"
    assert header.created_at is not None
    assert [i.menu_name for i in header.items] == ["Latte", "Croissant"]
    assert all(i.quantity == 1 for i in header.items)


def test_repeated_cart_entries_each_count_as_one_unit(db_session, menu, stock_of):
    crud.record_sale(db_session, sale_payload("Tea", "Tea", "Tea", total="36000"))
    assert count(db_session, models.TransactionItem) == 3
    assert stock_of("Tea") == 2


def test_quantity_field_is_ignored(db_session, menu, stock_of):
    payload = sale_payload("Latte", total="75000")
    payload["items"][0]["quantity"] = 3
    transaction_id = crud.record_sale(db_session, payload)
    assert stock_of("Latte") == 9
    assert crud.get_transaction(db_session, transaction_id).items[0].quantity == 1


def test_stock_may_go_negative(db_session, stock_of):
    db_session.add(models.MenuItem(name="Muffin", price=Decimal("10000"), stock=0, category="pastry"))
    db_session.commit()
    crud.record_sale(db_session, sale_payload("Muffin", total="10000"))
    assert stock_of("Muffin") == -1


def test_missing_or_zero_id_is_recorded_as_unresolved(db_session, menu):
    payload = sale_payload("Latte", "Croissant")
    payload["items"][0]["id"] = menu["Latte"]
    payload["items"][1]["id"] = 0
    transaction_id = crud.record_sale(db_session, payload)
    items = crud.get_transaction(db_session, transaction_id).items
    assert items[0].menu_item_id == menu["Latte"]
    assert items[1].menu_item_id is None


def test_ad_hoc_item_without_catalog_entry(db_session, menu, stock_of):
    transaction_id = crud.record_sale(db_session, sale_payload("Birthday candle", total="1000"))
    items = crud.get_transaction(db_session, transaction_id).items
    assert items[0].menu_name == "Birthday candle"
    assert stock_of("Latte") == 10


def test_location_defaults_and_is_kept(db_session, menu):
    payload = sale_payload("Tea", total="12000")
    payload["location"] = "Table 4"
    transaction_id = crud.record_sale(db_session, payload)
    assert crud.get_transaction(db_session, transaction_id).location == "Table 4"


@pytest.mark.parametrize("payload", [
    {"total": "1000", "method": "cash", "dineType": "dine-in"},
    {"items": [], "total": "1000", "method": "cash", "dineType": "dine-in"},
    {"items": [{"name": "Tea", "price": "12000"}], "method": "cash", "dineType": "dine-in"},
    {"items": [{"price": "12000"}], "total": "12000", "method": "cash", "dineType": "dine-in"},
    ["not", "a", "cart"],
])
def test_malformed_payload_raises_sale_error_and_writes_nothing(db_session, menu, stock_of, payload):
    with pytest.raises(crud.SaleError):
        crud.record_sale(db_session, payload)
    assert count(db_session, models.Transaction) == 0
    assert stock_of("Tea") == 5


def test_store_failure_mid_sale_rolls_back_everything(context, db_session, menu, stock_of):
    inserts = {"n": 0}

    def fail_on_second_item(conn, cursor, statement, parameters, exec_context, executemany):
        if statement.startswith("INSERT INTO transaction_items"):
            inserts["n"] += 1
            if inserts["n"] == 2:
                raise OperationalError(statement, parameters, Exception("connection lost"))

    event.listen(context.engine, "before_cursor_execute", fail_on_second_item)
    try:
        with pytest.raises(crud.SaleError):
            crud.record_sale(db_session, sale_payload("Latte", "Croissant"))
    finally:
        event.remove(context.engine, "before_cursor_execute", fail_on_second_item)

    # the first item and its stock decrement had already been executed
    assert inserts["n"] == 2
    assert count(db_session, models.Transaction) == 0
    assert count(db_session, models.TransactionItem) == 0
    assert stock_of("Latte") == 10
    assert stock_of("Croissant") == 8

    # the session is usable again afterwards
    crud.record_sale(db_session, sale_payload("Latte", total="25000"))
    assert stock_of("Latte") == 9


def test_create_user_hashes_password_and_rejects_duplicates(db_session):
    user = crud.create_user(db_session, schemas.UserCreate(username="kasir", password="pw", role="cashier"))
    assert user.id is not None
    assert user.role == "cashier"
    assert user.password_hash != "pw"

    with pytest.raises(ValueError):
        crud.create_user(db_session, schemas.UserCreate(username="kasir", password="other"))


def test_authenticate(db_session):
    crud.create_user(db_session, schemas.UserCreate(username="admin", password="secret"))
    assert crud.authenticate(db_session, "admin", "secret").role == "admin"
    assert crud.authenticate(db_session, "admin", "wrong") is None
    assert crud.authenticate(db_session, "nobody", "secret") is None


@pytest.mark.parametrize("bad_item", [
    {"id": 2 ** 64, "name": "Latte", "price": "25000"},
    {"id": -1, "name": "Latte", "price": "25000"},
    {"name": "   ", "price": "25000"},
    {"name": "Latte", "price": "1000000000000"},
])
def test_out_of_range_cart_values_raise_sale_error(db_session, menu, stock_of, bad_item):
    payload = sale_payload("Latte")
    payload["items"] = [bad_item]
    with pytest.raises(crud.SaleError):
        crud.record_sale(db_session, payload)
    assert count(db_session, models.Transaction) == 0
    assert stock_of("Latte") == 10


def test_cart_names_are_stripped_to_match_menu(db_session, menu, stock_of):
    transaction_id = crud.record_sale(db_session, sale_payload(" Latte", total="25000"))
    assert stock_of("Latte") == 9
    assert crud.get_transaction(db_session, transaction_id).items[0].menu_name == "Latte"
