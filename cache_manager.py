# cache_manager.py
import streamlit as st
from logging_config import get_logger

logger = get_logger(__name__)


def sync_all_caches(reason=None):
    """
    清空所有 @st.cache_data 缓存 (仪表盘统计等)
    客户/商品/库存/订单发生写入后，在 st.rerun() 前调用
    """
    if reason:
        logger.debug("清空页面缓存: %s", reason)
    st.cache_data.clear()
