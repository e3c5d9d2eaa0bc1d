"""
Resolve one order line to a catalog row.

Decision order:

1. No item code          -> look the SKU up in the secondary-code column.
2. Item code, 0 primary  -> SKU fallback.
   Item code, 1 primary  -> adopt it if its own secondary code equals the item
                            code, otherwise SKU fallback.
   Item code, 2+ primary -> SKU fallback or unmatched. Never one of the
                            ambiguous rows (old/new packaging splits).
3. Lot unit: the override table beats everything, then the row's lot unit,
   then 1.
4. Name: the row's canonical name when non-empty, else the order's own name.
"""
from __future__ import annotations

import logging
from typing import Mapping, Optional, Tuple

from .catalog import CatalogIndex, fold_code
from .model import CatalogRow, OrderLine, ResolutionPath, ResolvedIdentity

logger = logging.getLogger(__name__)

DEFAULT_LOT_OVERRIDES: Mapping[str, int] = {"-2": 2, "-4": 4, "-6": 6}


def _find_row(line: OrderLine, index: CatalogIndex) -> Tuple[Optional[CatalogRow], ResolutionPath]:
    def by_sku() -> Tuple[Optional[CatalogRow], ResolutionPath]:
        row = index.find_by_secondary_code(line.item_sku)
        if row is None:
            return None, ResolutionPath.UNMATCHED
        return row, ResolutionPath.SECONDARY_FALLBACK

    if not line.item_code.strip():
        return by_sku()

    primary = index.find_by_primary_code(line.item_code)
    if len(primary) == 1:
        only = primary[0]
        if fold_code(only.secondary_code) == fold_code(line.item_code):
            return only, ResolutionPath.PRIMARY
        return by_sku()

    if len(primary) > 1:
        logger.debug("item code %r hits %d catalog rows, need SKU confirmation", line.item_code, len(primary))
    return by_sku()


def lot_override(line: OrderLine, lot_overrides: Optional[Mapping[str, int]]) -> Optional[int]:
    table = DEFAULT_LOT_OVERRIDES if lot_overrides is None else lot_overrides
    code = (line.lot_override_code or "").strip()
    if not code:
        return None
    value = table.get(code)
    return int(value) if value else None


def resolve_identity(
    line: OrderLine,
    index: CatalogIndex,
    lot_overrides: Optional[Mapping[str, int]] = None,
) -> ResolvedIdentity:
    row, path = _find_row(line, index)
    override = lot_override(line, lot_overrides)

    if row is None:
        logger.debug("no catalog match for code=%r sku=%r", line.item_code, line.item_sku)
        return ResolvedIdentity(
            asin="",
            jan="",
            product_name=line.product_name,
            lot_unit=override if override is not None else 1,
            matched=False,
            path=ResolutionPath.UNMATCHED,
        )

    return ResolvedIdentity(
        asin=row.asin,
        jan=row.jan,
        product_name=row.product_name or line.product_name,
        lot_unit=override if override is not None else row.lot_unit,
        matched=True,
        path=path,
    )
