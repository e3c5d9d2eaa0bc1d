# tests/unit/reconcile/test_catalog_index.py
from services.reconcile.catalog import CatalogIndex
from services.reconcile.model import CatalogRow


def _row(primary, secondary, jan="", name=""):
    return CatalogRow(primary_code=primary, secondary_code=secondary, asin="", jan=jan, lot_unit=1, product_name=name)


def test_primary_lookup_returns_every_match_in_sheet_order():
    idx = CatalogIndex([_row("DUP", "A", jan="1"), _row("X", "B"), _row("DUP", "C", jan="2")])
    hits = idx.find_by_primary_code("DUP")
    assert [r.jan for r in hits] == ["1", "2"]


def test_lookups_are_trimmed_and_case_insensitive():
    idx = CatalogIndex([_row("Abc-1", "Sku-9")])
    assert len(idx.find_by_primary_code("  abc-1 ")) == 1
    assert idx.find_by_secondary_code("SKU-9").secondary_code == "Sku-9"


def test_secondary_lookup_first_row_wins():
    idx = CatalogIndex([_row("P1", "S", name="first"), _row("P2", "S", name="second")])
    assert idx.find_by_secondary_code("s").product_name == "first"


def test_blank_codes_never_match():
    idx = CatalogIndex([_row("", "S1"), _row("P1", "")])
    assert idx.find_by_primary_code("") == []
    assert idx.find_by_primary_code("   ") == []
    assert idx.find_by_secondary_code(None) is None
    assert idx.find_by_secondary_code("") is None
    assert len(idx) == 2


def test_no_match_returns_empty():
    idx = CatalogIndex([_row("P1", "S1")])
    assert idx.find_by_primary_code("nope") == []
    assert idx.find_by_secondary_code("nope") is None
