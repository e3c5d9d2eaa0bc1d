# tests/unit/reconcile/test_parse.py
import pytest

from services.reconcile.parse import (
    catalog_rows_from_values,
    clean_value,
    inventory_rows_from_values,
    order_line_from_record,
    parse_int,
    parse_lot_unit,
)
from services.reconcile.orders import DEFAULT_ORDER_COLUMNS
from services.reconcile.schema import ReconcileSchema
from test_helpers import catalog_row, inventory_row, inventory_values


@pytest.mark.parametrize("raw, expected", [
    ("1,250", 1250),
    ("１２", 12),
    ("１，０００", 1000),
    (" 7 ", 7),
    ("-3", -3),
    ("'42", 42),
    ("5.0", 5),
    (8, 8),
    (2.0, 2),
    ("", 0),
    ("abc", 0),
    ("1.5", 0),
    (None, 0),
    (True, 0),
])
def test_parse_int(raw, expected):
    assert parse_int(raw) == expected


def test_parse_int_default():
    assert parse_int("n/a", default=-1) == -1


@pytest.mark.parametrize("raw, expected", [("3", 3), ("", 1), ("abc", 1), ("0", 0), ("-2", -2)])
def test_parse_lot_unit(raw, expected):
    assert parse_lot_unit(raw) == expected


def test_clean_value_strips_bom_and_formula_prefix():
    assert clean_value("\ufeff商品コード") == "商品コード"
    assert clean_value('="00123"') == "00123"
    assert clean_value(None) == ""
    assert clean_value(5) == 5


def test_catalog_rows_skip_rows_without_codes():
    schema = ReconcileSchema()
    rows = catalog_rows_from_values(
        [
            catalog_row(primary="P1", secondary="S1", jan="111", lot_unit="2", name=" Tea "),
            catalog_row(name="header-ish, no codes"),
            ["short row"],
        ],
        schema.catalog,
    )
    assert len(rows) == 1
    assert rows[0].lot_unit == 2
    assert rows[0].product_name == "Tea"


def test_inventory_rows_keep_blank_rows_and_pad():
    layout = ReconcileSchema().inventory
    values = inventory_values(
        inventory_row("A", jan="111", quantity="1,250"),
        [],
        ["B", "", "", "", "", "222"],
    )
    rows = inventory_rows_from_values(values, layout)
    assert [r.position for r in rows] == [0, 1, 2]
    assert rows[0].quantity == 1250
    assert rows[1].jan == "" and len(rows[1].cells) == 31
    assert rows[2].jan == "222" and rows[2].quantity == 0


def test_inventory_rows_from_header_only():
    assert inventory_rows_from_values([["商品名"]], ReconcileSchema().inventory) == []


def test_order_line_clamps_negative_quantity():
    record = {"商品コード": "X1", "商品SKU": "X1", "個数": "-2", "商品名": "Tea", "SKU管理番号": "-2"}
    line = order_line_from_record(record, DEFAULT_ORDER_COLUMNS)
    assert line.quantity == 0
    assert line.lot_override_code == "-2"
