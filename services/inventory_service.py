from datetime import datetime
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func
from models import Product, InventoryRecord, Order
from exceptions import NotFoundError, ValidationError
from logging_config import get_logger
from services.pagination import paginate
from services.transaction import transaction
from services.validation import clean_text, parse_int, parse_positive_int, parse_price

logger = get_logger(__name__)


class InventoryService:
    """
    库存台账：每次库存变动都追加一条流水，当前库存 = 该商品所有流水 quantity 之和
    库存不缓存，每次读取都重新汇总，手工修改/删除流水后无需额外对账
    """

    def __init__(self, db: Session):
        self.db = db

    # ================= 辅助方法 =================

    def _get_product(self, product_id):
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError("商品", product_id)
        return product

    def _get_record(self, record_id):
        record = self.db.query(InventoryRecord).filter(InventoryRecord.id == record_id).first()
        if not record:
            raise NotFoundError("库存记录", record_id)
        return record

    # ================= 1. 库存计算 =================

    def get_product_stock(self, product_id):
        """实时汇总单个商品库存"""
        return self.db.query(func.coalesce(func.sum(InventoryRecord.quantity), 0))\
            .filter(InventoryRecord.product == product_id).scalar() or 0

    def get_stock_map(self, product_ids=None):
        """
        批量汇总库存，一次 GROUP BY 查询
        返回 {product_id: stock}，没有流水的商品为 0
        """
        query = self.db.query(InventoryRecord.product, func.sum(InventoryRecord.quantity))\
            .group_by(InventoryRecord.product)
        if product_ids is not None:
            product_ids = list(product_ids)
            if not product_ids:
                return {}
            query = query.filter(InventoryRecord.product.in_(product_ids))
        stock_map = {pid: int(total or 0) for pid, total in query.all()}
        if product_ids is not None:
            for pid in product_ids:
                stock_map.setdefault(pid, 0)
        return stock_map

    def attach_stock(self, products):
        """给商品对象挂上 stock 属性"""
        stock_map = self.get_stock_map([p.id for p in products])
        for p in products:
            p.stock = stock_map.get(p.id, 0)
        return products

    # ================= 2. 查询流水 =================

    def get_history(self, product_id):
        """某商品的全部流水，最新在前"""
        return self.db.query(InventoryRecord)\
            .filter(InventoryRecord.product == product_id)\
            .order_by(InventoryRecord.created_at.desc(), InventoryRecord.id.desc()).all()

    def list_records(self, page=1, page_size=10):
        """全部商品的流水 (分页)，附带商品名称"""
        query = self.db.query(InventoryRecord)\
            .options(joinedload(InventoryRecord.product_obj))\
            .order_by(InventoryRecord.created_at.desc(), InventoryRecord.id.desc())
        return paginate(query, page, page_size)

    # ================= 3. 入库 / 修改 / 删除 =================

    def stock_in(self, product_id, quantity, price, notes=None):
        """
        手工入库：数量必须为正整数，必须填写单价
        校验全部通过才会写库
        """
        quantity = parse_positive_int(quantity, "入库数量")
        price = parse_price(price, "入库单价")
        notes = clean_text(notes)

        with transaction(self.db, f"商品 #{product_id} 入库"):
            product = self._get_product(product_id)
            record = InventoryRecord(product=product.id, quantity=quantity, price=price, notes=notes)
            self.db.add(record)
            product.updated_at = datetime.now()

        logger.info("商品 #%s 入库 %s 件 (单价 %.2f)", product_id, quantity, price)
        return record

    def update_record(self, record_id, quantity=None, price=None, notes=None):
        """
        修改流水：数量可以是任意整数 (允许改成出库做更正)
        不传的字段保持不变
        """
        updates = {}
        if quantity is not None:
            updates["quantity"] = parse_int(quantity, "数量")
        if price is not None:
            updates["price"] = parse_price(price)
        if notes is not None:
            updates["notes"] = clean_text(notes)
        if not updates:
            raise ValidationError("没有需要修改的内容")

        with transaction(self.db, f"修改库存记录 #{record_id}"):
            record = self._get_record(record_id)
            for key, value in updates.items():
                setattr(record, key, value)

        logger.info("库存记录 #%s 已修改: %s", record_id, updates)
        return record

    def delete_record(self, record_id):
        """删除流水，库存在下次读取时自动重新计算"""
        with transaction(self.db, f"删除库存记录 #{record_id}"):
            record = self._get_record(record_id)
            # 订单上挂的出库流水被删时解除关联
            self.db.query(Order).filter(Order.inventory == record.id)\
                .update({Order.inventory: None}, synchronize_session=False)
            self.db.delete(record)

        logger.info("库存记录 #%s 已删除", record_id)
