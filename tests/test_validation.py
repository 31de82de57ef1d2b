import pytest

from constants import OrderStatus
from exceptions import InvalidTransitionError, NotFoundError, ValidationError
from services.pagination import like_pattern
from services.validation import clean_text, parse_enum, parse_int, parse_price, parse_sort


@pytest.mark.parametrize("value, expected", [(3, 3), (4.0, 4), ("-3", -3), (" 12 ", 12)])
def test_parse_int_accepts(value, expected):
    assert parse_int(value) == expected


@pytest.mark.parametrize("value", [None, True, 1.5, "1.5", "", "三"])
def test_parse_int_rejects(value):
    with pytest.raises(ValidationError):
        parse_int(value)


def test_parse_price_optional():
    assert parse_price("", required=False) is None
    assert parse_price("0") == 0


def test_parse_enum_message_lists_options():
    assert parse_enum(OrderStatus, "canceled", "状态") is OrderStatus.CANCELED
    with pytest.raises(ValidationError, match="pending / fulfilled / canceled"):
        parse_enum(OrderStatus, "shipped", "状态")


def test_parse_sort():
    assert parse_sort("name", "asc", ("name",)) == ("name", "asc")
    with pytest.raises(ValidationError):
        parse_sort("name", "ASC", ("name",))


def test_clean_text():
    assert clean_text("  a ") == "a"
    assert clean_text("   ") is None


def test_like_pattern_escapes_wildcards():
    assert like_pattern("50%_off\\") == "%50\\%\\_off\\\\%"


def test_error_hierarchy():
    # 调用方可以统一按 ValueError 处理
    assert issubclass(ValidationError, ValueError)
    assert issubclass(NotFoundError, ValueError)
    assert issubclass(InvalidTransitionError, ValidationError)
