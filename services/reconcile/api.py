# services/reconcile/api.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from services.exceptions import PartialWriteError, PreconditionError, SheetReadError

from .aggregate import aggregate_sales
from .catalog import CatalogIndex
from .dispatch import SheetsWriter, dispatch_writes
from .ledger import build_write_batch, quote_sheet_name, select_write_slot
from .merge import items_to_update, merge_inventory
from .model import (
    AccumulationPolicy,
    CatalogRow,
    InventoryRow,
    MergedItem,
    OrderLine,
    SalesAggregate,
    WriteCommand,
    WriteReport,
)
from .orders import DEFAULT_ORDER_COLUMNS
from .parse import catalog_rows_from_values, inventory_rows_from_values
from .resolver import DEFAULT_LOT_OVERRIDES
from .schema import ReconcileSchema

logger = logging.getLogger(__name__)

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d")
_TIME_FORMATS = ("%H:%M", "%H:%M:%S")


def _opt(d: dict, default, *path):
    cur = d
    for k in path:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return default if cur in (None, "") else cur


@dataclass(frozen=True)
class ReconcileSettings:
    catalog_sheet_id: str
    catalog_range: str
    inventory_sheet_id: str
    schema: ReconcileSchema = field(default_factory=ReconcileSchema)
    excluded_tabs: Tuple[str, ...] = ()
    lot_overrides: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_LOT_OVERRIDES))
    policy: AccumulationPolicy = AccumulationPolicy.SUM
    staff: Tuple[str, ...] = ()
    order_columns: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ORDER_COLUMNS))
    order_encoding: str = "cp932"

    @classmethod
    def from_config(cls, cfg: Optional[dict]) -> "ReconcileSettings":
        """
        Build settings from the `reconcile` section of config.json.
        Sheet ids fall back to PRODUCT_SHEET_ID / INVENTORY_SHEET_ID in the environment.
        """
        cfg = cfg or {}
        overrides = _opt(cfg, DEFAULT_LOT_OVERRIDES, "lot_overrides")
        return cls(
            catalog_sheet_id=_opt(cfg, os.getenv("PRODUCT_SHEET_ID", ""), "catalog", "sheet_id"),
            catalog_range=_opt(cfg, "出品管理!A:R", "catalog", "range"),
            inventory_sheet_id=_opt(cfg, os.getenv("INVENTORY_SHEET_ID", ""), "inventory", "sheet_id"),
            schema=ReconcileSchema.from_config(_opt(cfg, {}, "schema")),
            excluded_tabs=tuple(_opt(cfg, [], "inventory", "excluded_tabs")),
            lot_overrides={str(k): int(v) for k, v in overrides.items()},
            policy=AccumulationPolicy.from_value(_opt(cfg, "sum", "aggregation_policy")),
            staff=tuple(_opt(cfg, [], "staff")),
            order_columns=dict(_opt(cfg, DEFAULT_ORDER_COLUMNS, "order_file", "columns")),
            order_encoding=_opt(cfg, "cp932", "order_file", "encoding"),
        )


@dataclass
class UpdatePlan:
    merged: List[MergedItem]
    to_update: List[MergedItem]
    offset: int
    commands: List[WriteCommand]


@dataclass
class UpdateResult:
    sheet_name: str
    sales: SalesAggregate
    plan: UpdatePlan
    report: Optional[WriteReport] = None      # None on a dry run

    @property
    def dry_run(self) -> bool:
        return self.report is None

    def raise_for_failures(self) -> None:
        if self.report is not None and not self.report.ok:
            raise PartialWriteError(
                f"{self.report.failure_count} of {self.report.failure_count + self.report.success_count} "
                f"write(s) to '{self.sheet_name}' failed: {', '.join(self.report.failed_keys)}",
                self.report,
            )


# ---------- Preconditions ----------

def _parses(value: str, formats: Sequence[str]) -> bool:
    for fmt in formats:
        try:
            datetime.strptime(value, fmt)
            return True
        except ValueError:
            continue
    return False


def current_date_time(now: Optional[datetime] = None) -> Tuple[str, str]:
    now = now or datetime.now()
    return now.strftime("%Y-%m-%d"), now.strftime("%H:%M")


def validate_write_request(
    *,
    sheet_name: str,
    date: str,
    time: str,
    manager: str,
    order_lines: Sequence[OrderLine],
    staff: Sequence[str] = (),
) -> None:
    """Raise PreconditionError listing every missing input. Runs before any Sheets call."""
    problems: List[str] = []
    if not (sheet_name or "").strip():
        problems.append("select an inventory sheet")
    if not (date or "").strip():
        problems.append("enter a date")
    elif not _parses(date.strip(), _DATE_FORMATS):
        problems.append(f"date {date!r} is not YYYY-MM-DD")
    if not (time or "").strip():
        problems.append("enter a time")
    elif not _parses(time.strip(), _TIME_FORMATS):
        problems.append(f"time {time!r} is not HH:MM")
    if not (manager or "").strip():
        problems.append("choose a manager")
    elif staff and manager.strip() not in staff:
        problems.append(f"manager {manager!r} is not on the staff list")
    if not any(line.quantity > 0 for line in order_lines or ()):
        problems.append("load an order file with at least one sold item")
    if problems:
        raise PreconditionError("Cannot update inventory: " + "; ".join(problems) + ".")


# ---------- Reads ----------

def list_inventory_sheets(sheets_service, settings: ReconcileSettings) -> List[str]:
    names = sheets_service.get_sheet_names(settings.inventory_sheet_id, include_hidden=False)
    excluded = set(settings.excluded_tabs)
    return [n for n in names if n not in excluded]


def load_catalog(sheets_service, settings: ReconcileSettings) -> List[CatalogRow]:
    values = sheets_service.fetch_sheet_data(settings.catalog_sheet_id, settings.catalog_range)
    if not values:
        raise SheetReadError(f"Could not read the product catalog ({settings.catalog_range}).")
    return catalog_rows_from_values(values, settings.schema.catalog)


def read_inventory_values(
    sheets_service, settings: ReconcileSettings, sheet_name: str, *, fresh: bool = False
) -> List[List[str]]:
    a1 = f"{quote_sheet_name(sheet_name)}!{settings.schema.inventory.range_tail}"
    values = sheets_service.fetch_sheet_data(settings.inventory_sheet_id, a1, fresh=fresh)
    if not values:
        raise SheetReadError(f"Could not read inventory sheet '{sheet_name}'.")
    return values


def load_inventory(
    sheets_service, settings: ReconcileSettings, sheet_name: str, *, fresh: bool = False
) -> List[InventoryRow]:
    values = read_inventory_values(sheets_service, settings, sheet_name, fresh=fresh)
    return inventory_rows_from_values(values, settings.schema.inventory)


# ---------- Pipeline ----------

def build_picking_list(
    order_lines: Sequence[OrderLine],
    catalog_rows: Sequence[CatalogRow],
    settings: ReconcileSettings,
) -> SalesAggregate:
    return aggregate_sales(
        order_lines,
        CatalogIndex(catalog_rows),
        lot_overrides=settings.lot_overrides,
        policy=settings.policy,
    )


def plan_inventory_update(
    *,
    sales: SalesAggregate,
    inventory_rows: Sequence[InventoryRow],
    settings: ReconcileSettings,
    sheet_name: str,
    date: str,
    time: str,
    manager: str,
) -> UpdatePlan:
    """Merge, pick the ledger slot and build the batch. Pure; raises before any command exists."""
    layout = settings.schema.inventory
    merged = merge_inventory(inventory_rows, sales)
    to_update = items_to_update(merged)
    offset = select_write_slot(inventory_rows, to_update, layout)
    commands = build_write_batch(
        sheet_name=sheet_name,
        offset=offset,
        to_update=to_update,
        snapshot_rows=inventory_rows,
        layout=layout,
        date=date.strip(),
        time=time.strip(),
        manager=manager.strip(),
    )
    oversold = [m for m in to_update if m.is_oversold]
    if oversold:
        logger.warning(
            "%d item(s) go negative on '%s': %s",
            len(oversold), sheet_name, ", ".join(f"{m.key}={m.updated_quantity}" for m in oversold),
        )
    return UpdatePlan(merged=merged, to_update=to_update, offset=offset, commands=commands)


def run_inventory_update(
    *,
    sheets_service,
    settings: ReconcileSettings,
    order_lines: Sequence[OrderLine],
    sheet_name: str,
    date: str,
    time: str,
    manager: str,
    dry_run: bool = False,
    max_workers: int = 8,
) -> UpdateResult:
    """Validate, read catalog + inventory, merge, plan and (unless dry_run) write."""
    validate_write_request(
        sheet_name=sheet_name, date=date, time=time, manager=manager,
        order_lines=order_lines, staff=settings.staff,
    )

    catalog_rows = load_catalog(sheets_service, settings)
    sales = build_picking_list(order_lines, catalog_rows, settings)
    # the slot scan must see writes made elsewhere since any cached read
    inventory_rows = load_inventory(sheets_service, settings, sheet_name, fresh=True)

    plan = plan_inventory_update(
        sales=sales,
        inventory_rows=inventory_rows,
        settings=settings,
        sheet_name=sheet_name,
        date=date,
        time=time,
        manager=manager,
    )

    if dry_run:
        logger.info("dry run: %d command(s) planned for '%s'", len(plan.commands), sheet_name)
        return UpdateResult(sheet_name=sheet_name, sales=sales, plan=plan)

    writer = SheetsWriter(sheets_service, settings.inventory_sheet_id)
    report = dispatch_writes(writer, plan.commands, max_workers=max_workers)
    if not report.ok:
        logger.error(
            "inventory update on '%s': %d succeeded, %d failed (%s)",
            sheet_name, report.success_count, report.failure_count, ", ".join(report.failed_keys),
        )
    return UpdateResult(sheet_name=sheet_name, sales=sales, plan=plan, report=report)


def retry_failed_writes(
    *,
    sheets_service,
    settings: ReconcileSettings,
    report: WriteReport,
    max_workers: int = 8,
) -> WriteReport:
    """Re-send only the commands that failed last time. The ranges are unchanged, so this is safe."""
    writer = SheetsWriter(sheets_service, settings.inventory_sheet_id)
    retry = dispatch_writes(writer, report.failed_commands, max_workers=max_workers)
    return WriteReport(succeeded=report.succeeded + retry.succeeded, failed=retry.failed)


# ---------- JSON shapes ----------

def sales_to_dict(sales: SalesAggregate) -> dict:
    return {
        "items": [
            {
                "productName": e.product_name,
                "asin": e.asin,
                "jan": e.jan,
                "count": e.raw_count,
                "singleUnits": e.single_unit_count,
            }
            for e in sales.as_list()
        ],
        "totalSingleUnits": sales.total_single_units,
        "unmatched": [
            {"itemCode": line.item_code, "sku": line.item_sku, "productName": line.product_name, "count": line.quantity}
            for line in sales.unmatched
        ],
    }


def merged_to_dict(item: MergedItem) -> dict:
    return {
        "productName": item.product_name,
        "asin": item.asin,
        "jan": item.jan,
        "quantity": item.quantity,
        "salesCount": item.sales_count,
        "updatedQuantity": item.updated_quantity,
    }


def result_to_dict(result: UpdateResult) -> dict:
    return {
        "sheetName": result.sheet_name,
        "dryRun": result.dry_run,
        "merged": [merged_to_dict(m) for m in result.plan.merged],
        "updated": [merged_to_dict(m) for m in result.plan.to_update],
        "slotOffset": result.plan.offset,
        "commands": [{"range": c.range, "values": c.values_list()} for c in result.plan.commands],
        "report": result.report.to_dict() if result.report is not None else None,
    }
