import math
from dataclasses import dataclass, field
from typing import List

from exceptions import ValidationError


@dataclass
class Page:
    """分页结果"""
    items: List = field(default_factory=list)
    count: int = 0
    total_pages: int = 0
    page: int = 1
    page_size: int = 10


def check_page_args(page, page_size):
    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        raise ValidationError("页码必须是大于 0 的整数")
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
        raise ValidationError("每页条数必须是大于 0 的整数")


def paginate(query, page, page_size):
    """
    对已排序的查询做分页
    返回 Page，total_pages = ceil(count / page_size)
    """
    check_page_args(page, page_size)
    count = query.order_by(None).count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return Page(
        items=items,
        count=count,
        total_pages=math.ceil(count / page_size),
        page=page,
        page_size=page_size,
    )


def like_pattern(term):
    """子串匹配的 LIKE 模式，% 和 _ 按字面匹配 (配合 escape='\\')"""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def normalize_search(term):
    """空白搜索词视为不过滤"""
    if term is None:
        return ""
    return str(term).strip()
