# services/report_service.py
from datetime import date, datetime, time, timedelta
import pandas as pd
from sqlalchemy.orm import Session, selectinload, joinedload
from sqlalchemy import func
from models import Customer, Product, Order, OrderItem
from constants import OrderStatus, DeletedCustomer, LOW_STOCK_THRESHOLD
from services.inventory_service import InventoryService
from services.validation import parse_positive_int

MONTHLY_COLUMNS = ["month", "revenue", "orders"]
TOP_PRODUCT_COLUMNS = ["product", "title", "quantity"]


class ReportService:
    """
    负责仪表盘与报表数据的获取与聚合
    订单金额一律由明细实时计算 (成交价 × 数量)
    """

    def __init__(self, db: Session):
        self.db = db

    # ================= 辅助方法 =================

    @staticmethod
    def get_date_range(months, today=None):
        """
        统计区间：从 (months-1) 个月前的 1 号开始，到今天结束
        返回 (start_datetime, end_datetime)，end 为开区间
        """
        months = parse_positive_int(months, "统计月数")
        today = today or date.today()
        index = today.year * 12 + today.month - 1 - (months - 1)
        start = date(index // 12, index % 12 + 1, 1)
        return datetime.combine(start, time.min), datetime.combine(today + timedelta(days=1), time.min)

    def _orders_in_range(self, months, today):
        start, end = self.get_date_range(months, today)
        return self.db.query(Order)\
            .options(selectinload(Order.items).joinedload(OrderItem.product_obj))\
            .filter(Order.created_at >= start, Order.created_at < end)\
            .order_by(Order.created_at.asc()).all()

    # ================= 1. 销售趋势 =================

    def monthly_revenue(self, months=6, today=None):
        """
        按月汇总营业额与订单数
        返回 DataFrame: month (YYYY-MM), revenue, orders
        """
        orders = self._orders_in_range(months, today)
        if not orders:
            return pd.DataFrame(columns=MONTHLY_COLUMNS)

        df = pd.DataFrame([
            {"created_at": o.created_at, "revenue": float(o.total_amount)}
            for o in orders
        ])
        df["month"] = pd.to_datetime(df["created_at"]).dt.strftime("%Y-%m")
        summary = df.groupby("month").agg(
            revenue=("revenue", "sum"),
            orders=("revenue", "size"),
        ).reset_index()
        return summary.sort_values("month").reset_index(drop=True)[MONTHLY_COLUMNS]

    def top_products(self, months=6, limit=5, today=None):
        """
        销量榜：区间内各商品售出件数，降序
        返回 DataFrame: product, title, quantity
        """
        limit = parse_positive_int(limit, "显示条数")
        rows = []
        for o in self._orders_in_range(months, today):
            for item in o.items:
                title = item.product_obj.title if item.product_obj else f"产品#{item.product}"
                rows.append({"product": item.product, "title": title, "quantity": item.quantity})
        if not rows:
            return pd.DataFrame(columns=TOP_PRODUCT_COLUMNS)

        df = pd.DataFrame(rows)
        summary = df.groupby(["product", "title"], as_index=False)["quantity"].sum()
        summary = summary.sort_values(by=["quantity", "product"], ascending=[False, True])
        return summary.head(limit).reset_index(drop=True)[TOP_PRODUCT_COLUMNS]

    # ================= 2. 库存与订单概览 =================

    def low_stock(self, threshold=LOW_STOCK_THRESHOLD, limit=5):
        """库存小于等于阈值的商品，库存少的在前"""
        products = self.db.query(Product).all()
        InventoryService(self.db).attach_stock(products)
        low = [p for p in products if p.stock <= threshold]
        low.sort(key=lambda p: (p.stock, p.id))
        return low[:limit]

    def recent_orders(self, limit=3):
        return self.db.query(Order)\
            .options(joinedload(Order.customer_obj), selectinload(Order.items))\
            .order_by(Order.created_at.desc(), Order.id.desc())\
            .limit(limit).all()

    def dashboard_metrics(self, months=6, today=None):
        """
        仪表盘指标：
        - monthly_revenue: 区间内最近一个有订单的月份的营业额
        - customers_count: 客户数 (不含占位客户)
        - products_count: 商品数
        - pending_orders: 待处理订单数
        """
        series = self.monthly_revenue(months, today)
        last_revenue = float(series["revenue"].iloc[-1]) if not series.empty else 0.0

        customers_count = self.db.query(func.count(Customer.id))\
            .filter(Customer.name != DeletedCustomer.NAME).scalar() or 0
        products_count = self.db.query(func.count(Product.id)).scalar() or 0
        pending_orders = self.db.query(func.count(Order.id))\
            .filter(Order.status == OrderStatus.PENDING.value).scalar() or 0

        return {
            "monthly_revenue": last_revenue,
            "customers_count": customers_count,
            "products_count": products_count,
            "pending_orders": pending_orders,
        }
