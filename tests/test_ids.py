# tests/test_ids.py
import pytest

from app.utils.ids import id_query_values, normalize_product_id, normalize_product_ids


@pytest.mark.parametrize("raw,expected", [
    (7708018999350, "7708018999350"),
    ("7708018999350", "7708018999350"),
    (" 42 ", "42"),
    (42.0, "42"),
    ("42.0", "42"),
    ("gid://shopify/Product/123456", "123456"),
    (None, None),
    ("", None),
    (True, None),
    (4.5, None),
])
def test_normalize_product_id(raw, expected):
    assert normalize_product_id(raw) == expected


def test_normalize_product_ids_dedupes_in_order():
    assert normalize_product_ids([3, "gid://shopify/Product/1", "3", None, 1, 2]) == ["3", "1", "2"]


def test_id_query_values_matches_int_and_str():
    assert id_query_values("123") == [123, "123"]
    assert id_query_values("abc") == ["abc"]
