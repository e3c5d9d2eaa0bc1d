from __future__ import annotations

from typing import Iterable, List

from .model import InventoryRow, MergedItem, SalesAggregate


def sales_for_jan(sales: SalesAggregate, jan: str) -> int:
    jan = (jan or "").strip()
    if not jan:
        return 0
    entry = sales.get(jan)
    if entry is None or entry.single_unit_count <= 0:
        return 0
    return entry.single_unit_count


def merge_inventory(rows: Iterable[InventoryRow], sales: SalesAggregate) -> List[MergedItem]:
    """Join every snapshot row with its sales count. Nothing is dropped and nothing is clamped."""
    merged: List[MergedItem] = []
    for row in rows:
        sold = sales_for_jan(sales, row.jan)
        merged.append(MergedItem(
            position=row.position,
            product_name=row.product_name,
            asin=row.asin,
            jan=row.jan.strip(),
            quantity=row.quantity,
            sales_count=sold,
            updated_quantity=row.quantity - sold,
        ))
    return merged


def items_to_update(merged: Iterable[MergedItem]) -> List[MergedItem]:
    return [m for m in merged if m.sales_count > 0]
