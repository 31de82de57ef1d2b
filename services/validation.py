import math
import re

from constants import PHONE_PATTERN
from exceptions import ValidationError


def clean_text(value):
    """去掉首尾空白，空字符串转为 None"""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def require_text(value, label):
    value = clean_text(value)
    if not value:
        raise ValidationError(f"{label}不能为空")
    return value


def validate_phone(phone):
    """手机号可为空；填写时必须是 11 位手机号"""
    phone = clean_text(phone)
    if phone and not re.fullmatch(PHONE_PATTERN, phone):
        raise ValidationError("请输入有效的 11 位手机号码")
    return phone


def parse_price(value, label="价格", required=True):
    """价格必须能转成非负数字"""
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{label}不能为空")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{label}必须是数字")
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label}必须是数字")
    if math.isnan(price) or math.isinf(price):
        raise ValidationError(f"{label}必须是数字")
    if price < 0:
        raise ValidationError(f"{label}不能为负数")
    return price


def parse_int(value, label="数量"):
    """整数 (可正可负)，接受形如 "-3" 的字符串"""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{label}必须是整数")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{label}必须是整数")
        return int(value)
    text = str(value).strip()
    if not re.fullmatch(r"-?\d+", text):
        raise ValidationError(f"{label}必须是整数")
    return int(text)


def parse_positive_int(value, label="数量"):
    number = parse_int(value, label)
    if number <= 0:
        raise ValidationError(f"{label}必须大于 0")
    return number


def parse_enum(enum_cls, value, label):
    try:
        return enum_cls(value)
    except ValueError:
        options = " / ".join(m.value for m in enum_cls)
        raise ValidationError(f"{label}无效: {value} (可选: {options})")


def parse_sort(column, direction, allowed):
    if column not in allowed:
        raise ValidationError(f"不支持按 {column} 排序")
    if direction not in ("asc", "desc"):
        raise ValidationError("排序方向只能是 asc 或 desc")
    return column, direction
