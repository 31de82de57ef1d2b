import streamlit as st
import pandas as pd
from services.report_service import ReportService
from constants import OrderStatus, ORDER_STATUS_LABELS
from views.widgets import format_money

RANGE_OPTIONS = {1: "近 1 个月", 3: "近 3 个月", 6: "近 6 个月"}

# ------------------ 独立数据层缓存 ------------------

@st.cache_data(ttl=300, show_spinner=False)
def get_cached_dashboard(months):
    db_cache = st.session_state.get_dynamic_session()  # 动态获取
    try:
        service = ReportService(db_cache)
        return {
            "metrics": service.dashboard_metrics(months),
            "monthly": service.monthly_revenue(months),
            "top": service.top_products(months),
        }
    finally:
        db_cache.close()


def show_dashboard_page(db):
    st.header("📊 仪表盘")
    months = st.radio("统计区间", list(RANGE_OPTIONS.keys()), format_func=RANGE_OPTIONS.get, horizontal=True, index=2)

    try:
        data = get_cached_dashboard(months)
    except Exception as e:
        st.error(f"加载仪表盘数据失败: {e}")
        return

    metrics = data["metrics"]
    with st.container(border=True):
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("最近月营业额", format_money(metrics["monthly_revenue"]))
        c2.metric("客户数", metrics["customers_count"])
        c3.metric("商品数", metrics["products_count"])
        c4.metric("待处理订单", metrics["pending_orders"])

    col_left, col_right = st.columns(2)
    with col_left:
        st.subheader("📅 月度营业额")
        monthly = data["monthly"]
        if monthly.empty:
            st.caption("区间内暂无订单")
        else:
            st.dataframe(
                monthly.rename(columns={"month": "月份", "revenue": "营业额", "orders": "订单数"}),
                use_container_width=True, hide_index=True,
                column_config={"营业额": st.column_config.NumberColumn(format="%.2f")},
            )
    with col_right:
        st.subheader("🏆 销量前五")
        top = data["top"]
        if top.empty:
            st.caption("区间内暂无销量")
        else:
            st.dataframe(
                top[["title", "quantity"]].rename(columns={"title": "商品", "quantity": "售出件数"}),
                use_container_width=True, hide_index=True,
            )

    # 库存预警与最近订单不走缓存，保证看到的是最新数据
    service = ReportService(db)
    col_left, col_right = st.columns(2)
    with col_left:
        st.subheader("⚠️ 库存预警")
        low = service.low_stock()
        if low:
            st.dataframe(pd.DataFrame([{"商品": p.title, "库存": p.stock} for p in low]),
                         use_container_width=True, hide_index=True)
        else:
            st.caption("库存充足")
    with col_right:
        st.subheader("🕒 最近订单")
        recent = service.recent_orders()
        if recent:
            st.dataframe(pd.DataFrame([{
                "订单": f"#{o.id}",
                "客户": o.customer_obj.name,
                "状态": ORDER_STATUS_LABELS.get(OrderStatus(o.status), o.status),
                "金额": format_money(o.total_amount),
            } for o in recent]), use_container_width=True, hide_index=True)
        else:
            st.caption("暂无订单")
