import streamlit as st
import pandas as pd
from services.customer_service import CustomerService
from services.order_service import OrderService
from cache_manager import sync_all_caches
from constants import ORDER_STATUS_LABELS, OrderStatus
from views.widgets import show_pending_toast, set_toast, fetch_page, page_selector, format_money

SORT_OPTIONS = {"name": "名称", "created_at": "创建时间", "phone": "电话", "email": "邮箱"}


def _customer_form(key, initial=None):
    """客户表单，返回 (是否提交, 表单数据)"""
    initial = initial or {}
    with st.form(key):
        c1, c2 = st.columns(2)
        name = c1.text_input("客户名称 *", value=initial.get("name") or "")
        phone = c2.text_input("手机号", value=initial.get("phone") or "", placeholder="11 位手机号，可不填")
        email = c1.text_input("邮箱", value=initial.get("email") or "")
        address = c2.text_input("地址", value=initial.get("address") or "")
        notes = st.text_area("备注", value=initial.get("notes") or "")
        submitted = st.form_submit_button("💾 保存", type="primary")
    return submitted, {"name": name, "phone": phone, "email": email, "address": address, "notes": notes}


def show_customer_page(db):
    service = CustomerService(db)
    show_pending_toast()

    st.header("👥 客户管理")
    tab_list, tab_create, tab_edit = st.tabs(["📋 客户列表", "➕ 新建客户", "✏️ 编辑 / 删除"])

    # ================= 模块 1：客户列表 =================
    with tab_list:
        c1, c2, c3 = st.columns([2, 1, 1])
        search = c1.text_input("搜索 (名称 / 邮箱 / 电话)", key="customer_search")
        sort_column = c2.selectbox("排序", list(SORT_OPTIONS.keys()), format_func=SORT_OPTIONS.get)
        sort_direction = c3.selectbox("方向", ["asc", "desc"], format_func=lambda x: "升序" if x == "asc" else "降序")

        try:
            result = fetch_page(
                lambda page: service.list_customers(
                    page=page, page_size=10, search_term=search,
                    sort_column=sort_column, sort_direction=sort_direction,
                ),
                "customer_page",
            )
        except Exception as e:
            st.error(f"加载客户失败: {e}")
        else:
            if result.items:
                st.dataframe(pd.DataFrame([{
                    "ID": c.id,
                    "名称": c.name,
                    "电话": c.phone or "-",
                    "邮箱": c.email or "-",
                    "地址": c.address or "-",
                    "创建时间": c.created_at.strftime("%Y-%m-%d %H:%M") if c.created_at else "-",
                } for c in result.items]), use_container_width=True, hide_index=True)
            else:
                st.info("暂无客户数据")
            page_selector(result, "customer_page")

    # ================= 模块 2：新建客户 =================
    with tab_create:
        submitted, data = _customer_form("create_customer_form")
        if submitted:
            try:
                customer = service.create_customer(**data)
                set_toast(f"客户【{customer.name}】创建成功！")
                sync_all_caches()
                st.rerun()
            except Exception as e:
                st.error(f"创建失败: {e}")

    # ================= 模块 3：编辑 / 删除 =================
    with tab_edit:
        customers = service.get_all_customers()
        if not customers:
            st.info("暂无客户可编辑，请先新建客户。")
            return

        options = {c.id: f"{c.name} ({c.phone or '无电话'})" for c in customers}
        selected_id = st.selectbox("选择客户", list(options.keys()), format_func=options.get)
        try:
            target = service.get_customer_by_id(selected_id)
        except Exception as e:
            st.error(f"客户不存在: {e}")
            return

        submitted, data = _customer_form(f"edit_customer_form_{target.id}", {
            "name": target.name, "phone": target.phone, "email": target.email,
            "address": target.address, "notes": target.notes,
        })
        if submitted:
            try:
                service.update_customer(target.id, **data)
                set_toast(f"客户【{data['name']}】修改成功！")
                sync_all_caches()
                st.rerun()
            except Exception as e:
                st.error(f"修改失败: {e}")

        # 该客户的订单
        st.markdown("#### 🧾 历史订单")
        orders = OrderService(db).list_orders(page=1, page_size=50, customer_id=target.id)
        if orders.items:
            st.dataframe(pd.DataFrame([{
                "订单ID": o.id,
                "状态": ORDER_STATUS_LABELS.get(OrderStatus(o.status), o.status),
                "金额": format_money(o.total_amount),
                "日期": str(o.created_at)[:16],
            } for o in orders.items]), use_container_width=True, hide_index=True)
        else:
            st.caption("暂无订单")

        st.divider()
        with st.popover("🗑️ 删除客户"):
            order_count = service.get_order_count(target.id)
            st.warning(f"确定要删除客户【{target.name}】吗？")
            if order_count:
                st.info(f"该客户有 {order_count} 个订单，删除后这些订单会转到“已删除的客户”名下，订单记录保留。")
            if st.button("确认删除", type="primary", key=f"btn_del_customer_{target.id}"):
                try:
                    service.delete_customer(target.id)
                    set_toast(f"已删除客户：{target.name}", "🗑️")
                    sync_all_caches(f"删除客户 #{target.id}")
                    st.rerun()
                except Exception as e:
                    st.error(f"删除失败: {e}")
