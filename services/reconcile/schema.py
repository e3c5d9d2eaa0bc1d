"""
Named column layout for the catalog and inventory sheets.

Every sheet offset the reconciliation touches lives here, so the rest of the
package never indexes a raw row with a literal. ``ReconcileSchema.from_config``
builds the layout from the ``reconcile.schema`` block of config.json and
validates it once; the app factory and the CLI both call it at startup.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from openpyxl.utils import column_index_from_string, get_column_letter

from services.exceptions import ConfigError


@dataclass(frozen=True)
class CatalogColumns:
    asin: int = 4
    jan: int = 5
    lot_unit: int = 6
    primary_code: int = 15
    secondary_code: int = 16
    product_name: int = 17

    def offsets(self) -> dict:
        return {
            "asin": self.asin,
            "jan": self.jan,
            "lot_unit": self.lot_unit,
            "primary_code": self.primary_code,
            "secondary_code": self.secondary_code,
            "product_name": self.product_name,
        }

    @property
    def width(self) -> int:
        return max(self.offsets().values()) + 1


@dataclass(frozen=True)
class InventoryLayout:
    start_column: str = "C"             # first column of the read range
    header_row: int = 3                 # 1-based sheet row of the header
    width: int = 31                     # C..AG
    product_name: int = 0
    asin: int = 4
    jan: int = 5
    quantity: int = 6
    group_width: int = 4                # date, time, quantity, manager
    candidate_offsets: Tuple[int, ...] = (7, 11, 15, 19, 23, 27)

    def field_offsets(self) -> dict:
        return {
            "product_name": self.product_name,
            "asin": self.asin,
            "jan": self.jan,
            "quantity": self.quantity,
        }

    @property
    def range_tail(self) -> str:
        last = get_column_letter(column_index_from_string(self.start_column) + self.width - 1)
        return f"{self.start_column}{self.header_row}:{last}"

    def column_letter(self, offset: int) -> str:
        """Sheet column letter for an offset relative to the read range."""
        return get_column_letter(column_index_from_string(self.start_column) + offset)

    def row_number(self, position: int) -> int:
        """1-based sheet row of the data row at `position` (0 = first row under the header)."""
        return self.header_row + 1 + position

    def group_span(self, offset: int) -> range:
        return range(offset, offset + self.group_width)


@dataclass(frozen=True)
class ReconcileSchema:
    catalog: CatalogColumns = field(default_factory=CatalogColumns)
    inventory: InventoryLayout = field(default_factory=InventoryLayout)

    @classmethod
    def from_config(cls, cfg: Optional[Mapping]) -> "ReconcileSchema":
        cfg = cfg or {}
        cat_cfg = dict(cfg.get("catalog") or {})
        inv_cfg = dict(cfg.get("inventory") or {})
        try:
            catalog = CatalogColumns(**{k: int(v) for k, v in cat_cfg.items()})
            if "candidate_offsets" in inv_cfg:
                inv_cfg["candidate_offsets"] = tuple(int(x) for x in inv_cfg["candidate_offsets"])
            for k in ("header_row", "width", "product_name", "asin", "jan", "quantity", "group_width"):
                if k in inv_cfg:
                    inv_cfg[k] = int(inv_cfg[k])
            if "start_column" in inv_cfg:
                inv_cfg["start_column"] = str(inv_cfg["start_column"]).strip().upper()
            inventory = InventoryLayout(**inv_cfg)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid reconcile.schema in config.json: {e}") from e

        schema = cls(catalog=catalog, inventory=inventory)
        schema.validate()
        return schema

    def validate(self) -> None:
        problems: list[str] = []

        cat = self.catalog.offsets()
        if any(v < 0 for v in cat.values()):
            problems.append("catalog offsets must be >= 0")
        if len(set(cat.values())) != len(cat):
            problems.append(f"catalog offsets overlap: {cat}")

        inv = self.inventory
        try:
            column_index_from_string(inv.start_column)
        except ValueError:
            problems.append(f"inventory start_column {inv.start_column!r} is not a column letter")
        if inv.header_row < 1:
            problems.append("inventory header_row must be >= 1")
        if inv.group_width != 4:
            problems.append("inventory group_width must be 4 (date, time, quantity, manager)")
        if not inv.candidate_offsets:
            problems.append("inventory candidate_offsets is empty")

        fixed = inv.field_offsets()
        if any(v < 0 or v >= inv.width for v in fixed.values()):
            problems.append(f"inventory field offsets must fall inside the {inv.width}-column read range")
        if len(set(fixed.values())) != len(fixed):
            problems.append(f"inventory field offsets overlap: {fixed}")

        taken = set(fixed.values())
        for off in inv.candidate_offsets:
            span = set(inv.group_span(off))
            if off < 0 or off + inv.group_width > inv.width:
                problems.append(f"column group at offset {off} runs past the read range (width {inv.width})")
            if span & taken:
                problems.append(f"column group at offset {off} overlaps another group or a fixed column")
            taken |= span

        if problems:
            raise ConfigError("Invalid reconcile schema: " + "; ".join(problems))
