import pytest

from exceptions import NotFoundError, ValidationError
from models import InventoryRecord, Order, OrderItem, Product


@pytest.mark.parametrize("price", ["abc", -0.01, "nan", "inf", None, "", True])
def test_create_rejects_invalid_price(products, db, price):
    with pytest.raises(ValidationError):
        products.create_product("锁芯", "parts", price)
    assert db.query(Product).count() == 0


def test_create_accepts_numeric_strings(products):
    product = products.create_product(" 锁芯 ", "parts", "12.50")
    assert product.title == "锁芯"
    assert product.type == "parts"
    assert product.price == 12.5
    assert products.create_product("免费赠品", "parts", 0).price == 0


def test_create_rejects_unknown_type_and_blank_title(products):
    with pytest.raises(ValidationError):
        products.create_product("锁芯", "food", 1)
    with pytest.raises(ValidationError):
        products.create_product("", "keys", 1)


def test_update_product(products, make_product):
    product = make_product("旧名称", "keys", 5)
    products.update_product(product.id, "新名称", "tools", "8")
    updated = products.get_product_by_id(product.id)
    assert (updated.title, updated.type, updated.price) == ("新名称", "tools", 8)

    with pytest.raises(ValidationError):
        products.update_product(product.id, "新名称", "tools", "-1")
    assert products.get_product_by_id(product.id).price == 8

    with pytest.raises(NotFoundError):
        products.update_product(999, "x", "keys", 1)


def test_list_filters_and_enriches_stock(products, inventory, make_product):
    key = make_product("汽车钥匙", "keys", 30)
    make_product("家用钥匙", "keys", 10)
    tool = make_product("开锁工具", "tools", 100)
    inventory.stock_in(key.id, 5, 20)
    inventory.stock_in(tool.id, 2, 80)

    keys = products.list_products(product_type="keys")
    assert keys.count == 2
    assert {p.title for p in keys.items} == {"汽车钥匙", "家用钥匙"}

    found = products.list_products(search_term="汽车")
    assert [(p.title, p.stock) for p in found.items] == [("汽车钥匙", 5)]

    everything = products.list_products(product_type="all")
    assert everything.count == 3
    assert {p.title: p.stock for p in everything.items} == {"汽车钥匙": 5, "家用钥匙": 0, "开锁工具": 2}

    with pytest.raises(ValidationError):
        products.list_products(product_type="food")


def test_list_sorting(products, make_product):
    make_product("B", price=2)
    make_product("A", price=3)
    make_product("C", price=1)
    by_title = products.list_products(sort_column="title", sort_direction="asc")
    assert [p.title for p in by_title.items] == ["A", "B", "C"]
    by_price = products.list_products(sort_column="price", sort_direction="desc")
    assert [p.title for p in by_price.items] == ["A", "B", "C"]


def test_get_product_by_id_with_stock(products, inventory, make_product):
    product = make_product()
    inventory.stock_in(product.id, 9, 1)
    assert products.get_product_by_id(product.id).stock == 9
    with pytest.raises(NotFoundError):
        products.get_product_by_id(777)


def test_delete_product_cascades(products, inventory, orders, db, make_customer, make_product):
    customer = make_customer()
    doomed = make_product("停产钥匙")
    kept = make_product("常规钥匙")
    inventory.stock_in(doomed.id, 10, 1)
    inventory.stock_in(kept.id, 10, 1)

    mixed = orders.create_order(customer.id, [
        {"product_id": doomed.id, "quantity": 1, "price": 5},
        {"product_id": kept.id, "quantity": 2, "price": 6},
    ])
    orders.create_order(customer.id, [{"product_id": doomed.id, "quantity": 3, "price": 5}])

    # 2 条订单明细；1 条入库 + 2 条订单出库
    assert products.get_order_item_count(doomed.id) == 2
    assert products.get_inventory_count(doomed.id) == 3

    assert products.delete_product(doomed.id) == (2, 3)

    with pytest.raises(NotFoundError):
        products.get_product_by_id(doomed.id)
    assert db.query(OrderItem).filter(OrderItem.product == doomed.id).count() == 0
    assert db.query(InventoryRecord).filter(InventoryRecord.product == doomed.id).count() == 0

    # 其他商品的数据不受影响，订单本身保留
    assert products.get_product_by_id(kept.id).stock == 8
    remaining = orders.get_order_by_id(mixed.id)
    assert [(i.product, i.quantity) for i in remaining.items] == [(kept.id, 2)]
    assert remaining.inventory is None
    assert db.query(Order).count() == 2


def test_delete_unknown_product(products):
    with pytest.raises(NotFoundError):
        products.delete_product(1)


def test_deleted_product_stays_readable(products, inventory, make_product):
    target = products.get_product_by_id(make_product("旧款钥匙").id)
    inventory.stock_in(target.id, 2, 1)
    products.delete_product(target.id)
    assert f"已删除商品：{target.title}" == "已删除商品：旧款钥匙"
