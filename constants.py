from enum import Enum, unique

# ==========================================
# 1. 基础枚举 (Enums) - 用于类型判断和强约束
# ==========================================

@unique
class ProductType(str, Enum):
    """商品类型"""
    KEYS = "keys"     # 钥匙
    TOOLS = "tools"   # 工具
    PARTS = "parts"   # 配件


@unique
class OrderStatus(str, Enum):
    """订单状态"""
    PENDING = "pending"       # 待处理
    FULFILLED = "fulfilled"   # 已完成
    CANCELED = "canceled"     # 已取消


# 订单状态流转表：待处理可以完成或取消，完成/取消为终态
ORDER_STATUS_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.FULFILLED, OrderStatus.CANCELED},
    OrderStatus.FULFILLED: set(),
    OrderStatus.CANCELED: set(),
}

# 列表中 "全部" 选项的取值
FILTER_ALL = "all"

# ==========================================
# 2. 业务常量 - 客户相关
# ==========================================

class DeletedCustomer:
    """已删除客户的占位记录 (用于保留订单历史)"""
    NAME = "[已删除的客户]"
    NOTES = "这是一个占位客户，用于保留已删除客户的订单记录"


# 11 位手机号
PHONE_PATTERN = r"^1[3-9][0-9]{9}$"  # 只接受半角数字

CUSTOMER_SORT_COLUMNS = ("id", "name", "phone", "email", "created_at")
PRODUCT_SORT_COLUMNS = ("id", "title", "type", "price", "created_at", "updated_at")

# ==========================================
# 3. 业务常量 - 库存与订单相关
# ==========================================

class LedgerNote:
    """库存流水自动备注模板"""
    ORDER_OUT = "订单出库 - {quantity} 件"
    ORDER_ADJUST = "订单调整 #{order_id}"


DEFAULT_PAGE_SIZE = 10
LOW_STOCK_THRESHOLD = 5

# ==========================================
# 4. 显示用映射 (Maps)
# ==========================================

PRODUCT_TYPE_LABELS = {
    ProductType.KEYS: "钥匙",
    ProductType.TOOLS: "工具",
    ProductType.PARTS: "配件",
}

ORDER_STATUS_LABELS = {
    OrderStatus.PENDING: "⏳ 待处理",
    OrderStatus.FULFILLED: "✅ 已完成",
    OrderStatus.CANCELED: "❌ 已取消",
}
