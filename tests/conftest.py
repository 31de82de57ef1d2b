import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  注册表结构
from database import Base, make_session_factory
from services.customer_service import CustomerService
from services.inventory_service import InventoryService
from services.order_service import OrderService
from services.product_service import ProductService


@pytest.fixture
def engine():
    # 内存 SQLite，所有连接共用同一个库
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = make_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def customers(db):
    return CustomerService(db)


@pytest.fixture
def products(db):
    return ProductService(db)


@pytest.fixture
def inventory(db):
    return InventoryService(db)


@pytest.fixture
def orders(db):
    return OrderService(db)


@pytest.fixture
def make_customer(customers):
    def _make(name="张三", phone=None, **kwargs):
        return customers.create_customer(name=name, phone=phone, **kwargs)
    return _make


@pytest.fixture
def make_product(products):
    def _make(title="十字钥匙", product_type="keys", price=10):
        return products.create_product(title=title, product_type=product_type, price=price)
    return _make
