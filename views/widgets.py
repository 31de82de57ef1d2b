import streamlit as st


def show_pending_toast():
    """显示上一次 rerun 前留下的提示"""
    if "toast_msg" in st.session_state:
        msg, icon = st.session_state.toast_msg
        st.toast(msg, icon=icon)
        del st.session_state["toast_msg"]


def set_toast(msg, icon="✅"):
    st.session_state["toast_msg"] = (msg, icon)


def current_page(key):
    """读取分页控件上一次选择的页码"""
    return int(st.session_state.get(key, 1))


def page_selector(result, key):
    """
    在列表下方渲染分页控件
    result: services.pagination.Page
    """
    st.caption(f"共 {result.count} 条，第 {result.page} / {max(result.total_pages, 1)} 页")
    if result.total_pages <= 1:
        return
    # 搜索条件变化导致总页数变少时，把页码拉回第一页
    if st.session_state.get(key, 1) > result.total_pages:
        st.session_state[key] = 1
    st.number_input("页码", min_value=1, max_value=result.total_pages, step=1, key=key)


def fetch_page(fetch, key):
    """
    按当前页码取数据；页码超出范围时回到第一页重新取
    fetch: 接受 page 参数、返回 Page 的函数
    """
    result = fetch(current_page(key))
    if result.total_pages and result.page > result.total_pages:
        st.session_state[key] = 1
        result = fetch(1)
    return result


def format_money(value):
    return f"¥ {value or 0:,.2f}"
