import copy
import math
from typing import Any, Dict, Iterable, List

from form_engine.models import FieldDefinition

PRICING_KEYS = {"price", "quantity", "discount"}


def _number(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def line_total(item: Dict[str, Any]) -> float:
    """Price times quantity, less the percentage discount."""
    subtotal = _number(item.get("price")) * int(_number(item.get("quantity")))
    return subtotal - subtotal * _number(item.get("discount")) / 100


def grand_total(items: Iterable[Any]) -> float:
    return sum(_number(item.get("totalAmount")) for item in items if isinstance(item, dict))


def new_item(items: List[Any], template: Any) -> Any:
    item = copy.deepcopy(template)
    if isinstance(item, dict) and "id" in item:
        ids = [existing.get("id", 0) for existing in items if isinstance(existing, dict)]
        item["id"] = max(ids, default=0) + 1
    return item


def apply_update(item: Any, update: Any) -> Any:
    """Merge ``update`` into a record item, refreshing its total when pricing changes."""
    if not (isinstance(item, dict) and isinstance(update, dict)):
        return update
    merged = {**item, **update}
    if "totalAmount" in merged and PRICING_KEYS & set(update):
        merged["totalAmount"] = line_total(merged)
    return merged


def is_line_item_field(field: FieldDefinition) -> bool:
    """Repeatable fields whose items carry a ``totalAmount``."""
    item = field.repeatable.item_default if field.repeatable is not None else None
    return isinstance(item, dict) and "totalAmount" in item
