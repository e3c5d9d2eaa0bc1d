from __future__ import annotations

import csv
import io
import logging
import os
from typing import Dict, List, Mapping, Optional

from openpyxl import load_workbook

from services.exceptions import UploadValidationError

from .model import OrderLine
from .parse import clean_value, order_line_from_record

logger = logging.getLogger(__name__)

DEFAULT_ORDER_COLUMNS: Dict[str, str] = {
    "item_code": "商品コード",
    "item_sku": "商品SKU",
    "quantity": "個数",
    "product_name": "商品名",
    "lot_override_code": "SKU管理番号",
}

REQUIRED_FIELDS = ("item_code", "item_sku", "quantity", "product_name")

_BOM = b"\xef\xbb\xbf"


def _decode(data: bytes, encoding: str) -> str:
    if data.startswith(_BOM):
        return data.decode("utf-8-sig")
    for enc in (encoding, "utf-8"):
        try:
            return data.decode(enc)
        except (UnicodeDecodeError, LookupError):
            continue
    raise UploadValidationError(f"Could not decode the order file as {encoding} or UTF-8.")


def _csv_records(data: bytes, encoding: str) -> tuple[List[str], List[dict]]:
    reader = csv.DictReader(io.StringIO(_decode(data, encoding), newline=""))
    headers = [str(clean_value(h)) for h in (reader.fieldnames or [])]
    records = []
    for row in reader:
        cleaned = {str(clean_value(k)): v for k, v in row.items() if k is not None}
        if any(str(v or "").strip() for v in cleaned.values()):
            records.append(cleaned)
    return headers, records


def _xlsx_records(data: bytes) -> tuple[List[str], List[dict]]:
    wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        header_row = next(rows, None) or ()
        headers = [str(clean_value(h)) for h in header_row]
        records = []
        for row in rows:
            values = ["" if v is None else v for v in row]
            if not any(str(v).strip() for v in values):
                continue
            records.append({h: values[i] if i < len(values) else "" for i, h in enumerate(headers) if h})
        return headers, records
    finally:
        wb.close()


def parse_order_file(
    stream,
    filename: str,
    columns: Optional[Mapping[str, str]] = None,
    encoding: str = "cp932",
) -> List[OrderLine]:
    """
    Parse an order export (CSV or .xlsx) into OrderLines.

    `columns` maps OrderLine fields to the export's header text. Raises
    UploadValidationError when a required header is missing.
    """
    columns = dict(columns or DEFAULT_ORDER_COLUMNS)
    data = stream.read()
    if isinstance(data, str):
        data = data.encode("utf-8")
    if not data:
        raise UploadValidationError("The order file is empty.")

    ext = os.path.splitext(filename or "")[1].lower()
    if ext in (".xlsx", ".xlsm"):
        headers, records = _xlsx_records(data)
    else:
        headers, records = _csv_records(data, encoding)

    missing = [columns.get(f) or f for f in REQUIRED_FIELDS if columns.get(f) not in headers]
    if missing:
        logger.debug("parse_order_file: expected headers %s", list(columns.values()))
        logger.debug("parse_order_file: actual headers %s", headers)
        raise UploadValidationError(f"Order file is missing column(s): {', '.join(missing)}")

    lines = [order_line_from_record(r, columns) for r in records]
    logger.info("parse_order_file: %d order line(s) read from %r", len(lines), filename)
    return lines
