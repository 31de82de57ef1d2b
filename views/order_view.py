import streamlit as st
import pandas as pd
from services.order_service import OrderService
from services.customer_service import CustomerService
from services.product_service import ProductService
from cache_manager import sync_all_caches
from constants import OrderStatus, ORDER_STATUS_LABELS, ORDER_STATUS_TRANSITIONS, FILTER_ALL
from views.widgets import show_pending_toast, set_toast, fetch_page, page_selector, format_money


def _status_label(value):
    if value == FILTER_ALL:
        return "全部"
    return ORDER_STATUS_LABELS.get(OrderStatus(value), value)


def _items_editor(key, product_titles, rows):
    """订单明细编辑表格，返回可直接传给 Service 的 items 列表"""
    title_to_id = {title: pid for pid, title in product_titles.items()}
    df = pd.DataFrame(rows or [{"商品": None, "数量": 1, "单价": 0.0}])
    edited = st.data_editor(
        df,
        num_rows="dynamic",
        use_container_width=True,
        hide_index=True,
        key=key,
        column_config={
            "商品": st.column_config.SelectboxColumn("商品", options=list(title_to_id.keys()), required=True),
            "数量": st.column_config.NumberColumn("数量", min_value=1, step=1, format="%d"),
            "单价": st.column_config.NumberColumn("成交单价", min_value=0.0, format="%.2f"),
        },
    )
    items = []
    for _, row in edited.iterrows():
        if not row["商品"] or pd.isna(row["商品"]):
            continue
        items.append({
            "product_id": title_to_id[row["商品"]],
            "quantity": None if pd.isna(row["数量"]) else int(row["数量"]),
            "price": None if pd.isna(row["单价"]) else float(row["单价"]),
        })
    return items


def show_order_page(db):
    service = OrderService(db)
    show_pending_toast()

    st.header("🛒 订单管理")

    # ================= 1. 订单统计 =================
    stats = service.get_order_statistics()
    with st.container(border=True):
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("总订单数", stats["total"])
        c2.metric("待处理", stats[OrderStatus.PENDING.value])
        c3.metric("已完成", stats[OrderStatus.FULFILLED.value])
        c4.metric("已取消", stats[OrderStatus.CANCELED.value])

    products = ProductService(db).get_all_products()
    product_titles = {p.id: f"{p.title} (#{p.id})" for p in products}

    # ================= 2. 创建订单 =================
    with st.expander("➕ 创建新订单", expanded=False):
        customers = CustomerService(db).get_all_customers()
        if not customers or not products:
            st.warning("请先创建客户和商品")
        else:
            cust_options = {c.id: f"{c.name} ({c.phone or '无电话'})" for c in customers}
            customer_id = st.selectbox("客户", list(cust_options.keys()), format_func=cust_options.get)
            st.caption("成交单价按本单实际收取填写，之后修改商品标价不会影响本订单金额。")
            items = _items_editor("create_order_items", product_titles, [])
            notes = st.text_input("订单备注", key="create_order_notes")
            total = sum((i["price"] or 0) * (i["quantity"] or 0) for i in items)
            st.markdown(f"**合计: {format_money(total)}**")

            if st.button("✅ 提交订单", type="primary"):
                try:
                    order = service.create_order(customer_id, items, notes)
                    set_toast(f"订单 #{order.id} 创建成功！")
                    sync_all_caches()
                    st.rerun()
                except Exception as e:
                    st.error(f"创建失败: {e}")

    st.divider()

    # ================= 3. 订单列表 =================
    c1, c2 = st.columns([3, 1])
    search = c1.text_input("搜索客户名称 / 电话", key="order_search")
    status_filter = c2.selectbox("状态", [FILTER_ALL] + [s.value for s in OrderStatus], format_func=_status_label)

    try:
        result = fetch_page(
            lambda page: service.list_orders(page=page, page_size=10, search_term=search, status=status_filter),
            "order_page",
        )
    except Exception as e:
        st.error(f"加载订单失败: {e}")
        return

    if not result.items:
        st.info("暂无订单")
        return

    data_list = []
    for o in result.items:
        items_summary = ", ".join(
            f"{i.product_obj.title if i.product_obj else i.product}×{i.quantity}" for i in o.items[:2]
        )
        if len(o.items) > 2:
            items_summary += f" 等{len(o.items)}项"
        data_list.append({
            "ID": o.id,
            "客户": o.customer_obj.name,
            "电话": o.customer_obj.phone or "-",
            "状态": _status_label(o.status),
            "商品": items_summary,
            "金额": float(o.total_amount),
            "日期": str(o.created_at)[:16],
        })
    st.dataframe(pd.DataFrame(data_list), use_container_width=True, hide_index=True,
                 column_config={"金额": st.column_config.NumberColumn(format="%.2f")})
    page_selector(result, "order_page")

    # ================= 4. 订单详情 =================
    st.subheader("🔍 订单详情")
    order_ids = [o.id for o in result.items]
    selected_id = st.selectbox("选择订单", order_ids, format_func=lambda x: f"订单 #{x}")
    try:
        order = service.get_order_by_id(selected_id)
    except Exception as e:
        st.error(f"订单不存在: {e}")
        return

    current = OrderStatus(order.status)
    st.markdown(
        f"**客户**: {order.customer_obj.name} | **状态**: {_status_label(order.status)} | "
        f"**金额**: {format_money(order.total_amount)}"
    )

    # 状态流转：只列出当前状态允许的目标状态
    next_states = sorted(s.value for s in ORDER_STATUS_TRANSITIONS[current])
    if next_states:
        c1, c2 = st.columns([2, 1], vertical_alignment="bottom")
        target = c1.selectbox("变更状态为", next_states, format_func=_status_label, key=f"status_{order.id}")
        if c2.button("更新状态", key=f"btn_status_{order.id}"):
            try:
                service.update_status(order.id, target)
                set_toast(f"订单 #{order.id} 已更新为 {_status_label(target)}")
                sync_all_caches()
                st.rerun()
            except Exception as e:
                st.error(f"更新失败: {e}")
    else:
        st.caption("该订单已是终态，不能再变更状态。")

    new_notes = st.text_input("备注", value=order.notes or "", key=f"notes_{order.id}")
    if new_notes != (order.notes or "") and st.button("保存备注", key=f"btn_notes_{order.id}"):
        try:
            service.update_notes(order.id, new_notes)
            set_toast("备注已保存")
            sync_all_caches()
            st.rerun()
        except Exception as e:
            st.error(f"保存失败: {e}")

    if current == OrderStatus.PENDING:
        st.markdown("#### ✏️ 修改明细")
        st.caption("修改后会按数量差额自动补记库存流水。")
        rows = [{
            "商品": product_titles.get(i.product),
            "数量": i.quantity,
            "单价": i.price_overwrite,
        } for i in order.items]
        new_items = _items_editor(f"edit_order_items_{order.id}", product_titles, rows)
        if st.button("💾 保存明细", key=f"btn_items_{order.id}"):
            try:
                adjustments = service.update_items(order.id, new_items)
                set_toast(f"订单 #{order.id} 明细已更新，补记 {len(adjustments)} 条库存流水")
                sync_all_caches()
                st.rerun()
            except Exception as e:
                st.error(f"修改失败: {e}")
    else:
        st.dataframe(pd.DataFrame([{
            "商品": i.product_obj.title if i.product_obj else i.product,
            "数量": i.quantity,
            "成交单价": format_money(i.price_overwrite),
            "小计": format_money(i.subtotal),
        } for i in order.items]), use_container_width=True, hide_index=True)

    with st.popover("🗑️ 删除订单"):
        st.warning(f"确定删除订单 #{order.id} 吗？已扣减的库存不会自动恢复。")
        if st.button("确认删除", type="primary", key=f"btn_del_order_{order.id}"):
            try:
                service.delete_order(order.id)
                set_toast(f"订单 #{order.id} 已删除", "🗑️")
                sync_all_caches(f"删除订单 #{order.id}")
                st.rerun()
            except Exception as e:
                st.error(f"删除失败: {e}")
