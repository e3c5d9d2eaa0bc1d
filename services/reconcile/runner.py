from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from services.config_service import ConfigManager, SpreadsheetConfigUpdater
from services.exceptions import (
    ConfigError,
    DataProcessingError,
    NoWriteSlotError,
    PartialWriteError,
    PreconditionError,
    SheetReadError,
    UploadValidationError,
)

from .api import (
    ReconcileSettings,
    current_date_time,
    result_to_dict,
    retry_failed_writes,
    run_inventory_update,
)
from .orders import parse_order_file

logger = logging.getLogger(__name__)


def _load_sheets_service():
    # gspread is only needed once there is something to read
    from services.google_sheets_service import GoogleSheetsService
    return GoogleSheetsService()


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Apply an order export to an inventory sheet")
    ap.add_argument("order_file", nargs="?", help="Order export (.csv or .xlsx)")
    ap.add_argument("--config", default="config.json", help="Path to config.json")
    ap.add_argument("--sheet", help="Inventory tab to update")
    ap.add_argument("--date", help="YYYY-MM-DD written into the ledger")
    ap.add_argument("--time", help="HH:MM written into the ledger")
    ap.add_argument("--now", action="store_true", help="Use the current date and time")
    ap.add_argument("--manager", help="Who is applying the update")
    ap.add_argument("--dry-run", action="store_true", help="Plan the writes but don't send them")
    ap.add_argument("--retries", type=int, default=0, help="Re-send failed writes up to N times")
    ap.add_argument("--workers", type=int, default=8, help="Parallel write requests")
    ap.add_argument("--set-catalog-id", help="Save a new catalog spreadsheet id to config.json and exit")
    ap.add_argument("--set-inventory-id", help="Save a new inventory spreadsheet id to config.json and exit")
    return ap


def main(argv: Optional[List[str]] = None, sheets_service=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    cm = ConfigManager(args.config)
    if args.set_catalog_id or args.set_inventory_id:
        changed = SpreadsheetConfigUpdater(cm).update_spreadsheet_ids(
            catalog_id=args.set_catalog_id, inventory_id=args.set_inventory_id
        )
        print(f"Config updated: {cm.resolved_path}" if changed else "Config unchanged.")
        return 0

    if not args.order_file:
        print("An order file is required.", file=sys.stderr)
        return 2

    try:
        settings = ReconcileSettings.from_config(cm.get("reconcile", default={}))
    except (ConfigError, ValueError) as e:
        print(getattr(e, "message", str(e)), file=sys.stderr)
        return 2

    date, time = args.date, args.time
    if args.now:
        date, time = current_date_time()

    try:
        with open(args.order_file, "rb") as f:
            lines = parse_order_file(
                f, Path(args.order_file).name, settings.order_columns, settings.order_encoding
            )

        svc = sheets_service or _load_sheets_service()
        result = run_inventory_update(
            sheets_service=svc,
            settings=settings,
            order_lines=lines,
            sheet_name=args.sheet or "",
            date=date or "",
            time=time or "",
            manager=args.manager or "",
            dry_run=args.dry_run,
            max_workers=args.workers,
        )

        report = result.report
        for _ in range(max(0, args.retries)):
            if report is None or report.ok:
                break
            logger.info("retrying %d failed write(s)", report.failure_count)
            report = retry_failed_writes(
                sheets_service=svc, settings=settings, report=report, max_workers=args.workers
            )
        result.report = report

        print(json.dumps(result_to_dict(result), ensure_ascii=False, indent=2))
        result.raise_for_failures()
        return 0
    except (PreconditionError, UploadValidationError) as e:
        print(e.message, file=sys.stderr)
        return 2
    except NoWriteSlotError as e:
        print(e.message, file=sys.stderr)
        return 3
    except (SheetReadError, DataProcessingError) as e:
        print(e.message, file=sys.stderr)
        return 4
    except PartialWriteError as e:
        print(e.message, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
