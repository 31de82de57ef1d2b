import streamlit as st
from streamlit_option_menu import option_menu
from database import Base, create_db_engine, make_session_factory, get_db
from exceptions import ConfigError
from logging_config import setup_logging, get_logger
from views.dashboard_view import show_dashboard_page
from views.customer_view import show_customer_page
from views.product_view import show_product_page
from views.inventory_view import show_inventory_page
from views.order_view import show_order_page
import models  # noqa: F401  注册所有表到 Base.metadata

# === 1. 页面配置 (必须放在第一行) ===
st.set_page_config(page_title="门店后台管理系统", layout="wide")

setup_logging()
logger = get_logger(__name__)

# ==========================================
# === 2. 数据库连接 ===
# ==========================================

@st.cache_resource
def get_real_engine():
    """获取数据库连接 (Supabase Postgres)，配置缺失时返回错误信息"""
    try:
        engine = create_db_engine()
    except ConfigError as e:
        logger.error("数据库配置错误: %s", e)
        return None, str(e)
    # 初始化表结构 (已存在的表不会改动)
    Base.metadata.create_all(bind=engine)
    return engine, None


engine, config_error = get_real_engine()
if engine is None:
    st.error(f"⚙️ 数据库配置错误：{config_error}")
    st.stop()

SessionLocal = make_session_factory(engine)
# 供 @st.cache_data 的读取函数自行开会话
st.session_state.get_dynamic_session = SessionLocal

# ==========================================
# === 3. 侧边栏与业务路由 ===
# ==========================================

PAGES = {
    "仪表盘": ("speedometer2", show_dashboard_page),
    "客户管理": ("people", show_customer_page),
    "商品管理": ("bag-heart", show_product_page),
    "库存管理": ("arrow-left-right", show_inventory_page),
    "订单管理": ("cart-check", show_order_page),
}

with st.sidebar:
    selected = option_menu(
        menu_title="门店后台",
        menu_icon="shop",
        options=list(PAGES.keys()),
        icons=[icon for icon, _ in PAGES.values()],
        default_index=0,
    )

db_gen = get_db(SessionLocal)
db = next(db_gen)
try:
    PAGES[selected][1](db)
finally:
    db_gen.close()
