import re
from typing import Any, Iterable, List, Optional

_GID_RE = re.compile(r"Product/(\d+)")


def normalize_product_id(value: Any) -> Optional[str]:
    """
    Canonical string form of a product id.
    Accepts ints, integral floats, numeric strings and Shopify GIDs
    ("gid://shopify/Product/123"). Returns None for empty/unusable input.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value != value or not value.is_integer():  # NaN or fractional
            return None
        return str(int(value))
    s = str(value).strip()
    if not s:
        return None
    if m := _GID_RE.search(s):
        return m.group(1)
    # "7708018999350.0" from sloppy JSON
    if s.endswith(".0") and s[:-2].isdigit():
        return s[:-2]
    return s


def normalize_product_ids(values: Iterable[Any]) -> List[str]:
    """Normalize and de-duplicate, preserving first-seen order."""
    out: List[str] = []
    for v in values:
        pid = normalize_product_id(v)
        if pid and pid not in out:
            out.append(pid)
    return out


def id_query_values(product_id: str) -> list:
    """Values to match a stored productId that may be persisted as int or str."""
    values: list = [product_id]
    if product_id.isdigit():
        values.insert(0, int(product_id))
    return values
