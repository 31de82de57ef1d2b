import streamlit as st
import pandas as pd
from services.inventory_service import InventoryService
from services.product_service import ProductService
from cache_manager import sync_all_caches
from views.widgets import show_pending_toast, set_toast, fetch_page, page_selector, format_money


def show_inventory_page(db):
    service = InventoryService(db)
    show_pending_toast()

    st.header("🔁 库存管理")
    products = ProductService(db).get_all_products()
    if not products:
        st.info("暂无商品，请先在商品管理中新建商品。")
        return
    prod_options = {p.id: f"{p.title} (库存 {p.stock})" for p in products}

    # ================= 1. 入库 =================
    with st.expander("➕ 商品入库", expanded=True):
        with st.form("stock_in_form"):
            c1, c2, c3 = st.columns([2, 1, 1])
            product_id = c1.selectbox("商品", list(prod_options.keys()), format_func=prod_options.get)
            quantity = c2.number_input("入库数量", min_value=1, step=1, value=1)
            price = c3.text_input("入库单价 *", placeholder="必填")
            notes = st.text_input("备注")
            submitted = st.form_submit_button("✅ 确认入库", type="primary")
        if submitted:
            try:
                service.stock_in(product_id, int(quantity), price, notes)
                set_toast(f"入库成功：{prod_options[product_id]} +{int(quantity)}")
                sync_all_caches()
                st.rerun()
            except Exception as e:
                st.error(f"入库失败: {e}")

    # ================= 2. 流水列表 =================
    st.subheader("📜 库存流水")
    try:
        result = fetch_page(lambda page: service.list_records(page=page, page_size=20), "inventory_page")
    except Exception as e:
        st.error(f"加载库存流水失败: {e}")
        return

    if not result.items:
        st.info("暂无库存记录")
        return

    st.dataframe(pd.DataFrame([{
        "ID": r.id,
        "商品": r.product_obj.title if r.product_obj else f"产品#{r.product}",
        "数量": r.quantity,
        "单价": format_money(r.price),
        "备注": r.notes or "",
        "时间": str(r.created_at)[:16],
    } for r in result.items]), use_container_width=True, hide_index=True)
    page_selector(result, "inventory_page")

    # ================= 3. 修改 / 删除流水 =================
    st.subheader("✏️ 更正库存记录")
    st.caption("修改时数量可以填负数 (例如把入库更正为出库)。")
    record_options = {r.id: f"#{r.id} {r.product_obj.title if r.product_obj else r.product} ({r.quantity:+d})"
                      for r in result.items}
    record_id = st.selectbox("选择记录", list(record_options.keys()), format_func=record_options.get)
    record = next(r for r in result.items if r.id == record_id)

    with st.form(f"edit_record_form_{record.id}"):
        c1, c2 = st.columns(2)
        new_qty = c1.text_input("数量", value=str(record.quantity))
        new_price = c2.text_input("单价", value="" if record.price is None else f"{record.price:.2f}")
        new_notes = st.text_input("备注", value=record.notes or "")
        submitted = st.form_submit_button("💾 保存修改")
    if submitted:
        try:
            service.update_record(record.id, quantity=new_qty, price=new_price or None, notes=new_notes)
            set_toast(f"库存记录 #{record.id} 已修改")
            sync_all_caches()
            st.rerun()
        except Exception as e:
            st.error(f"修改失败: {e}")

    with st.popover("🗑️ 删除该记录"):
        st.warning(f"确定删除库存记录 #{record.id} 吗？库存会自动重新计算。")
        if st.button("确认删除", type="primary", key=f"btn_del_record_{record.id}"):
            try:
                service.delete_record(record.id)
                set_toast(f"库存记录 #{record.id} 已删除", "🗑️")
                sync_all_caches(f"删除库存记录 #{record.id}")
                st.rerun()
            except Exception as e:
                st.error(f"删除失败: {e}")
