import pytest

from constants import LedgerNote, OrderStatus
from exceptions import InvalidTransitionError, NotFoundError, ValidationError
from models import InventoryRecord, Order, OrderItem


@pytest.fixture
def shop(make_customer, make_product, inventory):
    """一个客户 + 两个各有 10 件库存的商品"""
    customer = make_customer("张三", phone="13800000000")
    a = make_product("A 钥匙", "keys", 100)
    b = make_product("B 工具", "tools", 100)
    inventory.stock_in(a.id, 10, 1)
    inventory.stock_in(b.id, 10, 1)
    return customer, a, b


def _ledger(db, product_id):
    return db.query(InventoryRecord).filter(InventoryRecord.product == product_id)\
        .order_by(InventoryRecord.id.asc()).all()


def test_create_order_writes_ledger_order_and_items(orders, products, inventory, db, shop):
    customer, a, b = shop
    order = orders.create_order(customer.id, [
        {"product_id": a.id, "quantity": 2, "price": 10},
        {"product_id": b.id, "quantity": 1, "price": 5},
    ], notes="加急")

    a_out = _ledger(db, a.id)[-1]
    b_out = _ledger(db, b.id)[-1]
    assert (a_out.quantity, a_out.price, a_out.notes) == (-2, 10, LedgerNote.ORDER_OUT.format(quantity=2))
    assert (b_out.quantity, b_out.price) == (-1, 5)
    assert inventory.get_product_stock(a.id) == 8
    assert inventory.get_product_stock(b.id) == 9

    saved = orders.get_order_by_id(order.id)
    assert saved.status == OrderStatus.PENDING.value
    assert saved.notes == "加急"
    assert saved.inventory == a_out.id
    assert saved.customer_obj.name == "张三"
    assert [(i.product, i.quantity, i.price_overwrite) for i in saved.items] == [(a.id, 2, 10), (b.id, 1, 5)]
    assert [i.product_obj.title for i in saved.items] == ["A 钥匙", "B 工具"]


def test_order_total_ignores_later_price_changes(orders, products, shop):
    customer, a, b = shop
    order = orders.create_order(customer.id, [
        {"product_id": a.id, "quantity": 2, "price": 10},
        {"product_id": b.id, "quantity": 1, "price": 5},
    ])
    assert orders.get_order_total(order.id) == 25
    assert orders.get_order_by_id(order.id).total_amount == 25

    products.update_product(a.id, "A 钥匙", "keys", 999)
    assert orders.get_order_total(order.id) == 25
    assert orders.get_order_by_id(order.id).total_amount == 25


def test_each_line_gets_its_own_ledger_row(orders, inventory, db, shop):
    customer, a, _ = shop
    order = orders.create_order(customer.id, [
        {"product_id": a.id, "quantity": 2, "price": 10},
        {"product_id": a.id, "quantity": 3, "price": 8},
    ])
    outgoing = [r for r in _ledger(db, a.id) if r.quantity < 0]
    assert [(r.quantity, r.price) for r in outgoing] == [(-2, 10), (-3, 8)]
    assert inventory.get_product_stock(a.id) == 5
    assert orders.get_order_by_id(order.id).inventory == outgoing[0].id
    assert len(orders.get_order_by_id(order.id).items) == 2
    assert orders.get_order_total(order.id) == 44


@pytest.mark.parametrize("items", [
    [],
    [{"product_id": 1, "quantity": 0, "price": 1}],
    [{"product_id": 1, "quantity": -2, "price": 1}],
    [{"product_id": 1, "quantity": 1, "price": -1}],
    [{"product_id": 1, "quantity": 1, "price": "abc"}],
    [{"product_id": None, "quantity": 1, "price": 1}],
])
def test_create_order_validation_writes_nothing(orders, db, shop, items):
    customer, _, _ = shop
    ledger_before = db.query(InventoryRecord).count()
    with pytest.raises(ValidationError):
        orders.create_order(customer.id, items)
    assert db.query(InventoryRecord).count() == ledger_before
    assert db.query(Order).count() == 0


def test_create_order_unknown_references(orders, db, shop):
    customer, a, _ = shop
    ledger_before = db.query(InventoryRecord).count()
    with pytest.raises(NotFoundError):
        orders.create_order(999, [{"product_id": a.id, "quantity": 1, "price": 1}])
    with pytest.raises(NotFoundError):
        orders.create_order(customer.id, [{"product_id": 999, "quantity": 1, "price": 1}])
    assert db.query(InventoryRecord).count() == ledger_before


def test_create_order_is_atomic(orders, db, shop, monkeypatch):
    customer, a, _ = shop
    ledger_before = db.query(InventoryRecord).count()

    def broken_insert(order_id, lines):
        raise RuntimeError("order_items insert failed")

    monkeypatch.setattr(orders, "_add_items", broken_insert)
    with pytest.raises(RuntimeError):
        orders.create_order(customer.id, [{"product_id": a.id, "quantity": 1, "price": 1}])

    assert db.query(InventoryRecord).count() == ledger_before
    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0


def test_list_orders_filters(orders, make_customer, shop):
    customer, a, _ = shop
    other = make_customer("李四", phone="13911112222")
    line = [{"product_id": a.id, "quantity": 1, "price": 1}]
    first = orders.create_order(customer.id, line)
    second = orders.create_order(other.id, line)
    third = orders.create_order(other.id, line)
    orders.update_status(third.id, "fulfilled")

    assert [o.id for o in orders.list_orders().items] == [third.id, second.id, first.id]
    assert [o.id for o in orders.list_orders(search_term="张").items] == [first.id]
    assert [o.id for o in orders.list_orders(search_term="1111222").items] == [third.id, second.id]
    assert [o.id for o in orders.list_orders(status="pending").items] == [second.id, first.id]
    assert [o.id for o in orders.list_orders(status="all", customer_id=other.id).items] == [third.id, second.id]

    page = orders.list_orders(page=2, page_size=2)
    assert (page.count, page.total_pages, len(page.items)) == (3, 2, 1)

    with pytest.raises(ValidationError):
        orders.list_orders(status="shipped")


def test_status_machine(orders, shop):
    customer, a, _ = shop
    line = [{"product_id": a.id, "quantity": 1, "price": 1}]

    done = orders.create_order(customer.id, line)
    assert orders.update_status(done.id, "fulfilled").status == "fulfilled"
    # 重复设置为当前状态不报错
    assert orders.update_status(done.id, OrderStatus.FULFILLED).status == "fulfilled"
    with pytest.raises(InvalidTransitionError):
        orders.update_status(done.id, "pending")
    with pytest.raises(InvalidTransitionError):
        orders.update_status(done.id, "canceled")

    dropped = orders.create_order(customer.id, line)
    orders.update_status(dropped.id, "canceled")
    with pytest.raises(InvalidTransitionError):
        orders.update_status(dropped.id, "fulfilled")

    with pytest.raises(ValidationError):
        orders.update_status(dropped.id, "lost")
    with pytest.raises(NotFoundError):
        orders.update_status(999, "fulfilled")


def test_update_items_appends_compensating_ledger_rows(orders, inventory, db, shop):
    customer, a, b = shop
    order = orders.create_order(customer.id, [{"product_id": a.id, "quantity": 2, "price": 10}])
    assert inventory.get_product_stock(a.id) == 8

    adjustments = orders.update_items(order.id, [
        {"product_id": a.id, "quantity": 5, "price": 9},
        {"product_id": b.id, "quantity": 1, "price": 4},
    ])
    assert sorted((r.product, r.quantity) for r in adjustments) == sorted([(a.id, -3), (b.id, -1)])
    assert inventory.get_product_stock(a.id) == 5
    assert inventory.get_product_stock(b.id) == 9
    assert orders.get_order_total(order.id) == 49

    # 去掉 A，只留 B×1：A 的 5 件加回库存，B 不变
    adjustments = orders.update_items(order.id, [{"product_id": b.id, "quantity": 1, "price": 4}])
    assert [(r.product, r.quantity) for r in adjustments] == [(a.id, 5)]
    assert adjustments[0].notes == LedgerNote.ORDER_ADJUST.format(order_id=order.id)
    assert inventory.get_product_stock(a.id) == 10
    assert inventory.get_product_stock(b.id) == 9
    assert [(i.product, i.quantity) for i in orders.get_order_by_id(order.id).items] == [(b.id, 1)]


def test_update_items_only_for_pending_orders(orders, db, shop):
    customer, a, _ = shop
    order = orders.create_order(customer.id, [{"product_id": a.id, "quantity": 1, "price": 1}])
    orders.update_status(order.id, "fulfilled")
    with pytest.raises(ValidationError):
        orders.update_items(order.id, [{"product_id": a.id, "quantity": 3, "price": 1}])
    assert [i.quantity for i in orders.get_order_by_id(order.id).items] == [1]

    with pytest.raises(ValidationError):
        orders.update_items(order.id, [])


def test_update_notes(orders, shop):
    customer, a, _ = shop
    order = orders.create_order(customer.id, [{"product_id": a.id, "quantity": 1, "price": 1}])
    orders.update_notes(order.id, "  送货上门 ")
    assert orders.get_order_by_id(order.id).notes == "送货上门"


def test_delete_order_keeps_ledger(orders, inventory, db, shop):
    customer, a, _ = shop
    order = orders.create_order(customer.id, [{"product_id": a.id, "quantity": 4, "price": 1}])
    orders.delete_order(order.id)

    with pytest.raises(NotFoundError):
        orders.get_order_by_id(order.id)
    assert db.query(OrderItem).count() == 0
    # 出库不回滚
    assert inventory.get_product_stock(a.id) == 6
    with pytest.raises(NotFoundError):
        orders.delete_order(order.id)


def test_order_statistics(orders, make_customer, shop):
    customer, a, _ = shop
    other = make_customer("李四")
    line = [{"product_id": a.id, "quantity": 1, "price": 1}]
    orders.create_order(customer.id, line)
    done = orders.create_order(customer.id, line)
    orders.update_status(done.id, "fulfilled")
    orders.create_order(other.id, line)

    assert orders.get_order_statistics() == {"pending": 2, "fulfilled": 1, "canceled": 0, "total": 3}
    assert orders.get_order_statistics(customer_id=other.id) == {
        "pending": 1, "fulfilled": 0, "canceled": 0, "total": 1,
    }


def test_deleted_order_stays_readable(orders, shop):
    customer, a, _ = shop
    created = orders.create_order(customer.id, [{"product_id": a.id, "quantity": 1, "price": 1}])
    # 页面拿到的是带明细的完整订单
    order = orders.get_order_by_id(created.id)
    assert len(order.items) == 1
    orders.delete_order(order.id)
    assert f"订单 #{order.id} 已删除" == f"订单 #{created.id} 已删除"
    assert orders.get_order_statistics()["total"] == 0
