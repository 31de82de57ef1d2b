import streamlit as st
import pandas as pd
from services.product_service import ProductService
from services.inventory_service import InventoryService
from cache_manager import sync_all_caches
from constants import ProductType, PRODUCT_TYPE_LABELS, FILTER_ALL
from views.widgets import show_pending_toast, set_toast, fetch_page, page_selector, format_money

TYPE_OPTIONS = [t.value for t in ProductType]


def _type_label(value):
    if value == FILTER_ALL:
        return "全部"
    return PRODUCT_TYPE_LABELS.get(ProductType(value), value)


def _product_form(key, initial=None):
    initial = initial or {}
    with st.form(key):
        c1, c2, c3 = st.columns([2, 1, 1])
        title = c1.text_input("商品名称 *", value=initial.get("title") or "")
        type_idx = TYPE_OPTIONS.index(initial["type"]) if initial.get("type") in TYPE_OPTIONS else 0
        product_type = c2.selectbox("类型", TYPE_OPTIONS, index=type_idx, format_func=_type_label)
        price = c3.text_input("标价 *", value=f"{initial['price']:.2f}" if initial.get("price") is not None else "")
        submitted = st.form_submit_button("💾 保存", type="primary")
    return submitted, {"title": title, "product_type": product_type, "price": price}


def show_product_page(db):
    service = ProductService(db)
    show_pending_toast()

    st.header("📦 商品管理")
    tab_list, tab_create, tab_edit = st.tabs(["📋 商品列表", "➕ 新建商品", "✏️ 编辑 / 删除"])

    # ================= 模块 1：商品列表 =================
    with tab_list:
        c1, c2 = st.columns([3, 1])
        search = c1.text_input("搜索商品名称", key="product_search")
        type_filter = c2.selectbox("类型", [FILTER_ALL] + TYPE_OPTIONS, format_func=_type_label)

        try:
            result = fetch_page(
                lambda page: service.list_products(
                    page=page, page_size=10, search_term=search, product_type=type_filter,
                ),
                "product_page",
            )
        except Exception as e:
            st.error(f"加载商品失败: {e}")
        else:
            if result.items:
                st.dataframe(pd.DataFrame([{
                    "ID": p.id,
                    "名称": p.title,
                    "类型": _type_label(p.type),
                    "标价": format_money(p.price),
                    "库存": p.stock,
                } for p in result.items]), use_container_width=True, hide_index=True)
            else:
                st.info("暂无商品数据")
            page_selector(result, "product_page")

    # ================= 模块 2：新建商品 =================
    with tab_create:
        submitted, data = _product_form("create_product_form")
        if submitted:
            try:
                product = service.create_product(**data)
                set_toast(f"商品《{product.title}》创建成功！")
                sync_all_caches()
                st.rerun()
            except Exception as e:
                st.error(f"创建失败: {e}")

    # ================= 模块 3：编辑 / 删除 =================
    with tab_edit:
        all_products = service.get_all_products()
        if not all_products:
            st.info("暂无商品可编辑，请先新建商品。")
            return

        prod_options = {p.id: f"{p.title} (库存 {p.stock})" for p in all_products}
        selected_id = st.selectbox("选择要编辑的商品", list(prod_options.keys()), format_func=prod_options.get)
        try:
            target = service.get_product_by_id(selected_id)
        except Exception as e:
            st.error(f"商品不存在: {e}")
            return

        st.metric("当前库存", f"{target.stock} 件")
        submitted, data = _product_form(f"edit_product_form_{target.id}", {
            "title": target.title, "type": target.type, "price": target.price,
        })
        if submitted:
            try:
                service.update_product(target.id, **data)
                set_toast(f"商品《{data['title']}》修改成功！")
                sync_all_caches()
                st.rerun()
            except Exception as e:
                st.error(f"修改失败: {e}")

        st.markdown("#### 📜 库存流水")
        history = InventoryService(db).get_history(target.id)
        if history:
            st.dataframe(pd.DataFrame([{
                "ID": r.id,
                "数量": r.quantity,
                "单价": format_money(r.price),
                "备注": r.notes or "",
                "时间": str(r.created_at)[:16],
            } for r in history]), use_container_width=True, hide_index=True)
        else:
            st.caption("暂无库存记录")

        st.divider()
        with st.popover("🗑️ 删除商品"):
            item_count = service.get_order_item_count(target.id)
            record_count = service.get_inventory_count(target.id)
            st.error(
                f"删除《{target.title}》将同时删除 {item_count} 条订单明细和 {record_count} 条库存记录，"
                "此操作不可恢复！"
            )
            if st.button("确认删除", type="primary", key=f"btn_del_product_{target.id}"):
                try:
                    service.delete_product(target.id)
                    set_toast(f"已删除商品：{target.title}", "🗑️")
                    sync_all_caches(f"删除商品 #{target.id}")
                    st.rerun()
                except Exception as e:
                    st.error(f"删除失败: {e}")
