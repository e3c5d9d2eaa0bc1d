# app/routes/inventory.py
from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from services.auth import auth
from services.exceptions import (
    DataProcessingError,
    NoWriteSlotError,
    PreconditionError,
    SheetReadError,
    UploadValidationError,
)
from services.google_sheets_service import GoogleSheetsService
from services.reconcile.api import (
    build_picking_list,
    list_inventory_sheets,
    load_catalog,
    read_inventory_values,
    result_to_dict,
    run_inventory_update,
    sales_to_dict,
)
from services.reconcile.orders import parse_order_file

inventory_bp = Blueprint("inventory", __name__, url_prefix="/inventory")

logger = logging.getLogger(__name__)


def _settings():
    return current_app.extensions["reconcile_settings"]


def _sheets():
    """One Sheets client per app; tests put a fake in app.extensions first."""
    svc = current_app.extensions.get("sheets_service")
    if svc is None:
        svc = GoogleSheetsService()
        current_app.extensions["sheets_service"] = svc
    return svc


def _order_lines_from_request():
    upload = request.files.get("file")
    if not upload or not upload.filename:
        raise UploadValidationError("Choose an order file (.csv or .xlsx) to upload.")
    settings = _settings()
    return parse_order_file(upload.stream, upload.filename, settings.order_columns, settings.order_encoding)


def _truthy(v) -> bool:
    return str(v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


@inventory_bp.errorhandler(UploadValidationError)
@inventory_bp.errorhandler(PreconditionError)
def _bad_request(exc):
    return jsonify({"error": exc.message}), 400


@inventory_bp.errorhandler(NoWriteSlotError)
def _no_slot(exc):
    return jsonify({"error": exc.message, "updateKeys": exc.update_keys}), 409


@inventory_bp.errorhandler(SheetReadError)
def _read_failed(exc):
    return jsonify({"error": exc.message}), 502


@inventory_bp.errorhandler(DataProcessingError)
def _processing_failed(exc):
    return jsonify({"error": exc.message}), 409


@inventory_bp.get("/sheets")
@auth.login_required
def sheets():
    return jsonify({"sheetNames": list_inventory_sheets(_sheets(), _settings())})


@inventory_bp.get("/sheets/<path:sheet_name>")
@auth.login_required
def read_sheet(sheet_name: str):
    values = read_inventory_values(_sheets(), _settings(), sheet_name)
    return jsonify({"sheetName": sheet_name, "values": values})


@inventory_bp.post("/aggregate")
@auth.login_required
def aggregate():
    """Upload an order export and get the single-unit picking list back."""
    lines = _order_lines_from_request()
    catalog_rows = load_catalog(_sheets(), _settings())
    sales = build_picking_list(lines, catalog_rows, _settings())
    return jsonify({"orderLines": len(lines), **sales_to_dict(sales)})


@inventory_bp.post("/update")
@auth.login_required
def update():
    """
    Upload an order export and write the updated stock into the first clean
    ledger column group of the chosen inventory sheet.
    """
    lines = _order_lines_from_request()
    form = request.form
    result = run_inventory_update(
        sheets_service=_sheets(),
        settings=_settings(),
        order_lines=lines,
        sheet_name=form.get("sheetName", ""),
        date=form.get("date", ""),
        time=form.get("time", ""),
        manager=form.get("manager", ""),
        dry_run=_truthy(form.get("dryRun")),
        max_workers=int(current_app.config.get("WRITE_MAX_WORKERS", 8)),
    )

    body = result_to_dict(result)
    if result.report is not None and not result.report.ok:
        logger.error(f"Partial inventory update on '{result.sheet_name}': {result.report.failed_keys}")
        return jsonify(body), 207
    return jsonify(body), 200
