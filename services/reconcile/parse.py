from __future__ import annotations

import logging
import re
from typing import List, Sequence

from .model import CatalogRow, InventoryRow, OrderLine
from .schema import CatalogColumns, InventoryLayout

logger = logging.getLogger(__name__)

# ASCII and full-width commas, apostrophes and any whitespace used as grouping
_THOUSANDS_RE = re.compile(r"[,，'\s]")
_INT_RE = re.compile(r"^[+-]?\d+$")


def clean_value(value):
    """
    Clean up a cell value: drop control characters (BOM included), a leading
    equals sign, double quotes and surrounding whitespace.
    """
    if isinstance(value, str):
        value = re.sub(r'[\x00-\x1F\x7F-\x9F\uFEFF]', '', value)
        value = value.lstrip('=')
        value = value.replace('"', '').strip()
        return value
    if value is None:
        return ""
    return value


def parse_int(value, default: int = 0) -> int:
    """
    Parse an integer cell such as '1,250' or '１２' (full-width digits).
    Anything else returns `default`; this never raises.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else default
    s = _THOUSANDS_RE.sub("", str(value))
    # NFKC-ish for digits only: full-width 0-9 -> ASCII
    s = s.translate(str.maketrans("０１２３４５６７８９－＋", "0123456789-+"))
    if s.endswith(".0"):
        s = s[:-2]
    if not _INT_RE.match(s):
        return default
    return int(s)


def parse_lot_unit(value) -> int:
    """Blank or unparsable cells mean single units. A parsed 0 is kept; those items never count as sold."""
    return parse_int(value, default=1)


def _cell(row: Sequence, idx: int) -> str:
    if idx < len(row) and row[idx] is not None:
        return str(row[idx])
    return ""


def catalog_rows_from_values(values: List[List[str]], columns: CatalogColumns) -> List[CatalogRow]:
    """Convert raw catalog values into typed rows, skipping rows with no codes at all."""
    out: List[CatalogRow] = []
    for row in values or []:
        primary = _cell(row, columns.primary_code).strip()
        secondary = _cell(row, columns.secondary_code).strip()
        if not primary and not secondary:
            continue
        out.append(CatalogRow(
            primary_code=primary,
            secondary_code=secondary,
            asin=_cell(row, columns.asin).strip(),
            jan=_cell(row, columns.jan).strip(),
            lot_unit=parse_lot_unit(_cell(row, columns.lot_unit)),
            product_name=_cell(row, columns.product_name).strip(),
        ))
    logger.debug("catalog: %d usable rows out of %d", len(out), len(values or []))
    return out


def inventory_rows_from_values(values: List[List[str]], layout: InventoryLayout) -> List[InventoryRow]:
    """
    Convert the inventory read range into typed rows.

    `values[0]` is the header row (the read range starts on it); every row
    after it becomes an InventoryRow, blank ones included, so `position`
    always matches the sheet.
    """
    out: List[InventoryRow] = []
    for position, row in enumerate((values or [])[1:]):
        cells = tuple(str(c) if c is not None else "" for c in row)
        if len(cells) < layout.width:
            cells = cells + ("",) * (layout.width - len(cells))
        out.append(InventoryRow(
            position=position,
            product_name=cells[layout.product_name].strip(),
            asin=cells[layout.asin].strip(),
            jan=cells[layout.jan].strip(),
            quantity=parse_int(cells[layout.quantity]),
            cells=cells,
        ))
    return out


def order_line_from_record(record: dict, columns: dict) -> OrderLine:
    """Build an OrderLine from one parsed export record keyed by header text."""
    def get(name: str) -> str:
        header = columns.get(name)
        return str(clean_value(record.get(header, ""))) if header else ""

    quantity = parse_int(get("quantity"))
    return OrderLine(
        item_code=get("item_code"),
        item_sku=get("item_sku"),
        quantity=quantity if quantity > 0 else 0,
        product_name=get("product_name"),
        lot_override_code=get("lot_override_code"),
    )
