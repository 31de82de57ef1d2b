from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from database import Base
from constants import OrderStatus, DeletedCustomer

# --- A. 客户 ---
class Customer(Base):
    __tablename__ = "customers"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=True)     # 11 位手机号，可为空
    email = Column(String, nullable=True)
    address = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    # 删除客户前服务层已把订单改挂到占位客户，ORM 不再处理子表
    orders = relationship("Order", back_populates="customer_obj", passive_deletes="all")


# 占位客户全表只能有一条 (部分唯一索引)
Index(
    "uq_customers_deleted_placeholder",
    Customer.name,
    unique=True,
    postgresql_where=Customer.name == DeletedCustomer.NAME,
    sqlite_where=Customer.name == DeletedCustomer.NAME,
)


# --- B. 商品 ---
class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)     # keys / tools / parts
    price = Column(Float, default=0.0)        # 标价
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # 库存不落库，由 inventory 流水汇总得出，读取时挂在 stock 属性上
    stock = 0

    # 子表由服务层先删除
    inventory_records = relationship("InventoryRecord", back_populates="product_obj", passive_deletes="all")


# --- C. 库存流水 (只追加的台账) ---
class InventoryRecord(Base):
    __tablename__ = "inventory"
    id = Column(Integer, primary_key=True, index=True)
    product = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)   # 正数入库，负数出库
    price = Column(Float, nullable=True)         # 变动时的单价
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    product_obj = relationship("Product", back_populates="inventory_records")


# --- D. 订单 ---
class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True, index=True)
    customer = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    status = Column(String, default=OrderStatus.PENDING.value, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now)
    # 下单时生成的第一条出库流水
    inventory = Column(Integer, ForeignKey("inventory.id", ondelete="SET NULL"), nullable=True)

    customer_obj = relationship("Customer", back_populates="orders")
    items = relationship("OrderItem", back_populates="order_obj", order_by="OrderItem.id", passive_deletes="all")

    @property
    def total_amount(self):
        """订单总额：实时计算，不落库"""
        return sum((item.price_overwrite or 0) * item.quantity for item in self.items)


class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True, index=True)
    # 数据库列名为保留字 "order"，SQLAlchemy 会自动加引号
    order = Column("order", Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    price_overwrite = Column(Float, nullable=True)   # 实际成交单价

    order_obj = relationship("Order", back_populates="items")
    product_obj = relationship("Product")

    @property
    def subtotal(self):
        return (self.price_overwrite or 0) * self.quantity
