from collections import OrderedDict
from sqlalchemy.orm import Session, contains_eager, selectinload, joinedload
from sqlalchemy import func, or_
from models import Customer, Product, InventoryRecord, Order, OrderItem
from constants import OrderStatus, ORDER_STATUS_TRANSITIONS, FILTER_ALL, LedgerNote
from exceptions import NotFoundError, ValidationError, InvalidTransitionError
from logging_config import get_logger
from services.pagination import paginate, like_pattern, normalize_search
from services.transaction import transaction
from services.validation import clean_text, parse_enum, parse_positive_int, parse_price

logger = get_logger(__name__)


class OrderService:
    def __init__(self, db: Session):
        self.db = db

    # ================= 辅助方法 =================

    def _base_query(self):
        """订单 + 客户 + 明细(含商品名称) 的联合查询"""
        return self.db.query(Order)\
            .join(Customer, Order.customer == Customer.id)\
            .options(
                contains_eager(Order.customer_obj),
                selectinload(Order.items).joinedload(OrderItem.product_obj),
            )

    def _get_order(self, order_id):
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("订单", order_id)
        return order

    @staticmethod
    def _parse_items(items):
        """
        校验订单明细
        items: [{"product_id": 1, "quantity": 2, "price": 10.0}, ...]
        返回清洗后的同结构列表
        """
        if not items:
            raise ValidationError("订单明细不能为空")
        lines = []
        for idx, item in enumerate(items, start=1):
            if item.get("product_id") is None:
                raise ValidationError(f"第 {idx} 行未选择商品")
            lines.append({
                "product_id": item["product_id"],
                "quantity": parse_positive_int(item.get("quantity"), f"第 {idx} 行数量"),
                "price": parse_price(item.get("price"), f"第 {idx} 行单价"),
            })
        return lines

    def _check_products_exist(self, lines):
        product_ids = {line["product_id"] for line in lines}
        found = {pid for (pid,) in self.db.query(Product.id).filter(Product.id.in_(product_ids)).all()}
        missing = sorted(product_ids - found)
        if missing:
            raise NotFoundError("商品", missing[0])

    @staticmethod
    def _group_by_product(lines):
        """按商品合并数量，单价取该商品第一行的成交价"""
        grouped = OrderedDict()
        for line in lines:
            entry = grouped.setdefault(line["product_id"], {"quantity": 0, "price": line["price"]})
            entry["quantity"] += line["quantity"]
        return grouped

    def _add_items(self, order_id, lines):
        self.db.add_all([
            OrderItem(
                order=order_id,
                product=line["product_id"],
                quantity=line["quantity"],
                price_overwrite=line["price"],  # 成交价固定在下单时，之后改标价不影响历史订单
            )
            for line in lines
        ])

    # ================= 1. 查询方法 =================

    def list_orders(self, page=1, page_size=10, search_term="", status=None, customer_id=None):
        """
        订单列表 (分页，最新在前)
        search_term: 匹配客户名称或电话
        status: pending/fulfilled/canceled，None 或 "all" 表示全部
        customer_id: 只看某个客户的订单
        """
        query = self._base_query()

        term = normalize_search(search_term)
        if term:
            pattern = like_pattern(term)
            query = query.filter(or_(
                Customer.name.ilike(pattern, escape="\\"),
                Customer.phone.ilike(pattern, escape="\\"),
            ))

        if status and status != FILTER_ALL:
            query = query.filter(Order.status == parse_enum(OrderStatus, status, "订单状态").value)

        if customer_id is not None:
            query = query.filter(Order.customer == customer_id)

        return paginate(query.order_by(Order.created_at.desc(), Order.id.desc()), page, page_size)

    def get_order_by_id(self, order_id):
        """根据ID获取订单详情 (客户 + 明细)"""
        order = self._base_query().filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("订单", order_id)
        return order

    def get_order_total(self, order_id):
        """订单总额 = Σ 成交价 × 数量，实时计算"""
        total = self.db.query(func.sum(OrderItem.price_overwrite * OrderItem.quantity))\
            .filter(OrderItem.order == order_id).scalar()
        return float(total or 0.0)

    def get_order_statistics(self, customer_id=None):
        """按状态统计订单数"""
        query = self.db.query(Order.status, func.count(Order.id))
        if customer_id is not None:
            query = query.filter(Order.customer == customer_id)
        counts = dict(query.group_by(Order.status).all())

        stats = {s.value: counts.get(s.value, 0) for s in OrderStatus}
        stats["total"] = sum(counts.values())
        return stats

    # ================= 2. 创建订单 =================

    def create_order(self, customer_id, items, notes=None):
        """
        创建订单并扣减库存
        1. 每行明细追加一条负数出库流水
        2. 创建订单主记录，关联第一条出库流水，状态为 pending
        3. 每行明细写入 order_items，记录成交价
        全部在一个事务内，任一步失败不会留下孤立的出库流水
        """
        lines = self._parse_items(items)
        notes = clean_text(notes)

        with transaction(self.db, "创建订单"):
            customer = self.db.query(Customer).filter(Customer.id == customer_id).first()
            if not customer:
                raise NotFoundError("客户", customer_id)
            self._check_products_exist(lines)

            # 1. 出库流水
            records = [
                InventoryRecord(
                    product=line["product_id"],
                    quantity=-line["quantity"],  # 负数为出库
                    price=line["price"],
                    notes=LedgerNote.ORDER_OUT.format(quantity=line["quantity"]),
                )
                for line in lines
            ]
            self.db.add_all(records)
            self.db.flush()

            # 2. 订单主记录
            order = Order(
                customer=customer.id,
                status=OrderStatus.PENDING.value,
                notes=notes,
                inventory=records[0].id,
            )
            self.db.add(order)
            self.db.flush()  # 获取 order.id

            # 3. 订单明细
            self._add_items(order.id, lines)

        logger.info("订单 #%s 已创建 (客户 #%s, %s 行明细)", order.id, customer_id, len(lines))
        return order

    # ================= 3. 修改订单 =================

    def update_status(self, order_id, status):
        """
        修改订单状态，按状态机校验：
        pending -> fulfilled / canceled；fulfilled、canceled 为终态
        设置为当前状态视为无变化
        """
        target = parse_enum(OrderStatus, status, "订单状态")
        with transaction(self.db, f"修改订单 #{order_id} 状态"):
            order = self._get_order(order_id)
            current = OrderStatus(order.status)
            if current == target:
                return order
            if target not in ORDER_STATUS_TRANSITIONS[current]:
                raise InvalidTransitionError(current.value, target.value)
            order.status = target.value

        logger.info("订单 #%s 状态: %s -> %s", order_id, current.value, target.value)
        return order

    def update_notes(self, order_id, notes):
        with transaction(self.db, f"修改订单 #{order_id} 备注"):
            order = self._get_order(order_id)
            order.notes = clean_text(notes)
        return order

    def update_items(self, order_id, items):
        """
        整体替换订单明细，并补记库存差额：
        每个商品 差额 = 新数量 - 旧数量，差额不为 0 时追加一条 -差额 的调整流水
        已完成/已取消的订单不能修改明细
        返回追加的调整流水列表
        """
        lines = self._parse_items(items)

        with transaction(self.db, f"修改订单 #{order_id} 明细"):
            order = self._get_order(order_id)
            if OrderStatus(order.status) != OrderStatus.PENDING:
                raise ValidationError("只有待处理的订单可以修改明细")
            self._check_products_exist(lines)

            old_items = self.db.query(OrderItem).filter(OrderItem.order == order.id).all()
            old_qty = OrderedDict()
            old_price = {}
            for item in old_items:
                old_qty[item.product] = old_qty.get(item.product, 0) + item.quantity
                old_price.setdefault(item.product, item.price_overwrite)

            new_grouped = self._group_by_product(lines)

            # 1. 删除旧明细，写入新明细
            self.db.query(OrderItem).filter(OrderItem.order == order.id).delete(synchronize_session=False)
            self._add_items(order.id, lines)

            # 2. 补记库存差额
            adjustments = []
            for product_id in list(old_qty) + [pid for pid in new_grouped if pid not in old_qty]:
                new_entry = new_grouped.get(product_id)
                delta = (new_entry["quantity"] if new_entry else 0) - old_qty.get(product_id, 0)
                if delta == 0:
                    continue
                adjustments.append(InventoryRecord(
                    product=product_id,
                    quantity=-delta,
                    price=new_entry["price"] if new_entry else old_price.get(product_id),
                    notes=LedgerNote.ORDER_ADJUST.format(order_id=order.id),
                ))
            self.db.add_all(adjustments)

        logger.info("订单 #%s 明细已替换，追加 %s 条库存调整", order_id, len(adjustments))
        return adjustments

    # ================= 4. 删除订单 =================

    def delete_order(self, order_id):
        """
        删除订单及其明细
        出库流水保留，不回滚库存
        """
        with transaction(self.db, f"删除订单 #{order_id}"):
            order = self._get_order(order_id)
            self.db.query(OrderItem).filter(OrderItem.order == order.id).delete(synchronize_session=False)
            self.db.delete(order)
        logger.info("订单 #%s 已删除 (出库流水保留)", order_id)
