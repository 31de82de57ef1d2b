from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from models import Customer, Order
from constants import DeletedCustomer, CUSTOMER_SORT_COLUMNS
from exceptions import NotFoundError, ValidationError
from logging_config import get_logger
from services.pagination import paginate, like_pattern, normalize_search
from services.transaction import transaction
from services.validation import clean_text, require_text, validate_phone, parse_sort

logger = get_logger(__name__)


class CustomerService:
    def __init__(self, db: Session):
        self.db = db

    # ================= 辅助方法 =================

    def _validate(self, name, phone, email, address, notes):
        """表单校验：名称必填，手机号选填但要合法，空字符串一律存为 NULL"""
        name = require_text(name, "客户名称")
        if name == DeletedCustomer.NAME:
            raise ValidationError(f"{DeletedCustomer.NAME} 是系统保留名称")
        return {
            "name": name,
            "phone": validate_phone(phone),
            "email": clean_text(email),
            "address": clean_text(address),
            "notes": clean_text(notes),
        }

    def _get_customer(self, customer_id):
        customer = self.db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise NotFoundError("客户", customer_id)
        return customer

    # ================= 1. 查询 =================

    def list_customers(self, page=1, page_size=10, search_term="",
                       sort_column="name", sort_direction="asc"):
        """
        客户列表 (分页)
        search_term 同时匹配 名称/邮箱/电话，忽略大小写；为空则不过滤
        """
        sort_column, sort_direction = parse_sort(sort_column, sort_direction, CUSTOMER_SORT_COLUMNS)
        query = self.db.query(Customer)

        term = normalize_search(search_term)
        if term:
            pattern = like_pattern(term)
            query = query.filter(or_(
                Customer.name.ilike(pattern, escape="\\"),
                Customer.email.ilike(pattern, escape="\\"),
                Customer.phone.ilike(pattern, escape="\\"),
            ))

        order_col = getattr(Customer, sort_column)
        order_col = order_col.asc() if sort_direction == "asc" else order_col.desc()
        return paginate(query.order_by(order_col, Customer.id.asc()), page, page_size)

    def get_all_customers(self):
        """全部客户 (下单时的下拉框用)，不含占位客户"""
        return self.db.query(Customer)\
            .filter(Customer.name != DeletedCustomer.NAME)\
            .order_by(Customer.name.asc()).all()

    def get_customer_by_id(self, customer_id):
        return self._get_customer(customer_id)

    def get_order_count(self, customer_id):
        """该客户的订单数 (删除前提示用)"""
        return self.db.query(func.count(Order.id))\
            .filter(Order.customer == customer_id).scalar() or 0

    # ================= 2. 新建 / 修改 =================

    def create_customer(self, name, phone=None, email=None, address=None, notes=None):
        data = self._validate(name, phone, email, address, notes)
        with transaction(self.db, "新建客户"):
            customer = Customer(**data)
            self.db.add(customer)
            self.db.flush()
        logger.info("新建客户 #%s %s", customer.id, data["name"])
        return customer

    def update_customer(self, customer_id, name, phone=None, email=None, address=None, notes=None):
        """整体替换可编辑字段"""
        data = self._validate(name, phone, email, address, notes)
        with transaction(self.db, f"修改客户 #{customer_id}"):
            customer = self._get_customer(customer_id)
            for key, value in data.items():
                setattr(customer, key, value)
        logger.info("客户 #%s 已修改", customer_id)
        return customer

    # ================= 3. 删除 (订单改挂占位客户) =================

    def _find_placeholder(self):
        return self.db.query(Customer)\
            .filter(Customer.name == DeletedCustomer.NAME)\
            .order_by(Customer.id.asc()).first()

    def _get_or_create_placeholder(self):
        """
        查找占位客户，没有就新建 (只 flush，不提交)
        并发首次创建时唯一索引会让后到的一方 IntegrityError，整个事务回滚
        """
        placeholder = self._find_placeholder()
        if placeholder:
            return placeholder
        placeholder = Customer(name=DeletedCustomer.NAME, notes=DeletedCustomer.NOTES)
        self.db.add(placeholder)
        self.db.flush()
        logger.info("已创建占位客户 #%s", placeholder.id)
        return placeholder

    def get_or_create_deleted_placeholder(self):
        """获取 "[已删除的客户]" 占位记录，多次调用只会创建一次"""
        with transaction(self.db, "创建占位客户"):
            placeholder = self._get_or_create_placeholder()
        return placeholder

    def delete_customer(self, customer_id):
        """
        删除客户，保留订单历史
        1. 找到或创建占位客户
        2. 该客户的所有订单改挂到占位客户
        3. 删除客户
        三步在同一事务中，任何一步失败都整体回滚，不会出现订单指向已删除客户
        返回被改挂的订单数
        """
        with transaction(self.db, f"删除客户 #{customer_id}"):
            customer = self._get_customer(customer_id)
            if customer.name == DeletedCustomer.NAME:
                raise ValidationError("占位客户用于保留历史订单，不能删除")

            placeholder = self._get_or_create_placeholder()

            moved = self.db.query(Order).filter(Order.customer == customer.id)\
                .update({Order.customer: placeholder.id}, synchronize_session=False)

            self.db.delete(customer)

        logger.info("客户 #%s 已删除，%s 个订单改挂到占位客户 #%s", customer_id, moved, placeholder.id)
        return moved
