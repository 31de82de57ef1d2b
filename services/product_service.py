from sqlalchemy.orm import Session
from sqlalchemy import func, select
from models import Product, InventoryRecord, Order, OrderItem
from constants import ProductType, FILTER_ALL, PRODUCT_SORT_COLUMNS
from exceptions import NotFoundError
from logging_config import get_logger
from services.inventory_service import InventoryService
from services.pagination import paginate, like_pattern, normalize_search
from services.transaction import transaction
from services.validation import require_text, parse_price, parse_enum, parse_sort

logger = get_logger(__name__)


class ProductService:
    def __init__(self, db: Session):
        self.db = db
        self.inventory = InventoryService(db)

    def _validate(self, title, product_type, price):
        """写库前统一校验：标题必填、类型合法、价格为非负数字"""
        return {
            "title": require_text(title, "商品名称"),
            "type": parse_enum(ProductType, product_type, "商品类型").value,
            "price": parse_price(price),
        }

    def _get_product(self, product_id):
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError("商品", product_id)
        return product

    # ================= 1. 查询 =================

    def list_products(self, page=1, page_size=10, search_term="", product_type=None,
                      sort_column="created_at", sort_direction="desc"):
        """
        商品列表 (分页)
        search_term: 按名称模糊匹配，忽略大小写
        product_type: keys/tools/parts，None 或 "all" 表示全部
        每个商品都会挂上实时计算的 stock
        """
        sort_column, sort_direction = parse_sort(sort_column, sort_direction, PRODUCT_SORT_COLUMNS)
        query = self.db.query(Product)

        term = normalize_search(search_term)
        if term:
            query = query.filter(Product.title.ilike(like_pattern(term), escape="\\"))

        if product_type and product_type != FILTER_ALL:
            query = query.filter(Product.type == parse_enum(ProductType, product_type, "商品类型").value)

        order_col = getattr(Product, sort_column)
        order_col = order_col.asc() if sort_direction == "asc" else order_col.desc()
        result = paginate(query.order_by(order_col, Product.id.desc()), page, page_size)
        self.inventory.attach_stock(result.items)
        return result

    def get_all_products(self):
        """全部商品 (下拉框/报表用)，附带库存"""
        products = self.db.query(Product).order_by(Product.title.asc()).all()
        return self.inventory.attach_stock(products)

    def get_product_by_id(self, product_id):
        """根据ID获取单个商品，附带库存"""
        product = self._get_product(product_id)
        product.stock = self.inventory.get_product_stock(product.id)
        return product

    def get_order_item_count(self, product_id):
        """引用该商品的订单明细数 (删除前提示用)"""
        return self.db.query(func.count(OrderItem.id))\
            .filter(OrderItem.product == product_id).scalar() or 0

    def get_inventory_count(self, product_id):
        """该商品的库存流水条数 (删除前提示用)"""
        return self.db.query(func.count(InventoryRecord.id))\
            .filter(InventoryRecord.product == product_id).scalar() or 0

    # ================= 2. 新建 / 修改 =================

    def create_product(self, title, product_type, price):
        data = self._validate(title, product_type, price)
        with transaction(self.db, "新建商品"):
            new_prod = Product(**data)
            self.db.add(new_prod)
            self.db.flush()  # 获取 ID
        logger.info("新建商品 #%s %s", new_prod.id, data["title"])
        return new_prod

    def update_product(self, product_id, title, product_type, price):
        data = self._validate(title, product_type, price)
        with transaction(self.db, f"修改商品 #{product_id}"):
            target_prod = self._get_product(product_id)
            for key, value in data.items():
                setattr(target_prod, key, value)
        logger.info("商品 #%s 已修改", product_id)
        return target_prod

    # ================= 3. 删除 (级联) =================

    def delete_product(self, product_id):
        """
        删除商品及其所有关联数据，不可恢复
        顺序：订单明细 -> 库存流水 -> 商品本身 (先删子表再删主表)
        返回 (删除的订单明细数, 删除的库存流水数)
        """
        with transaction(self.db, f"删除商品 #{product_id}"):
            target_prod = self._get_product(product_id)

            # 1. 订单明细
            item_count = self.db.query(OrderItem).filter(OrderItem.product == target_prod.id)\
                .delete(synchronize_session=False)

            # 2. 库存流水 (先解除订单对这些流水的引用)
            record_ids = select(InventoryRecord.id).where(InventoryRecord.product == target_prod.id)
            self.db.query(Order).filter(Order.inventory.in_(record_ids))\
                .update({Order.inventory: None}, synchronize_session=False)
            record_count = self.db.query(InventoryRecord).filter(InventoryRecord.product == target_prod.id)\
                .delete(synchronize_session=False)

            # 3. 商品
            self.db.delete(target_prod)

        logger.warning("商品 #%s 已删除 (订单明细 %s 条, 库存流水 %s 条)", product_id, item_count, record_count)
        return item_count, record_count
