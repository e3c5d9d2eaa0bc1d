# tests/unit/reconcile/test_resolver.py
from services.reconcile.catalog import CatalogIndex
from services.reconcile.model import CatalogRow, OrderLine, ResolutionPath
from services.reconcile.resolver import lot_override, resolve_identity


def _line(code="", sku="", qty=1, name="order name", override=""):
    return OrderLine(item_code=code, item_sku=sku, quantity=qty, product_name=name, lot_override_code=override)


class TestResolveIdentity:

    def test_self_consistent_primary_row_is_adopted(self, catalog_index):
        ident = resolve_identity(_line("X1", "S1", qty=3), catalog_index)
        assert ident.matched
        assert ident.path is ResolutionPath.PRIMARY
        assert ident.jan == "4900000000001"
        assert ident.lot_unit == 2
        assert ident.product_name == "Green Tea 2-pack"

    def test_blank_item_code_falls_back_to_sku(self, catalog_index):
        ident = resolve_identity(_line("", "S9"), catalog_index)
        assert ident.matched
        assert ident.path is ResolutionPath.SECONDARY_FALLBACK
        assert ident.asin == "B000S9"
        # lot unit cell "abc" parses to the default
        assert ident.lot_unit == 1

    def test_ambiguous_primary_without_sku_confirmation_is_unmatched(self, catalog_index):
        ident = resolve_identity(_line("DUP", "nothing-like-it", name="Soap"), catalog_index)
        assert not ident.matched
        assert ident.path is ResolutionPath.UNMATCHED
        assert ident.lot_unit == 1
        assert ident.asin == "" and ident.jan == ""
        assert ident.product_name == "Soap"
        assert ident.key == "Soap"

    def test_ambiguous_primary_adopts_sku_confirmed_row(self, catalog_index):
        ident = resolve_identity(_line("DUP", "dup-new"), catalog_index)
        assert ident.matched
        assert ident.path is ResolutionPath.SECONDARY_FALLBACK
        assert ident.jan == "4900000000011"
        assert ident.lot_unit == 3

    def test_single_primary_needs_its_own_secondary_to_match(self, catalog_index):
        # Y1's secondary code is y1-sku, so the primary hit alone is not enough
        assert not resolve_identity(_line("Y1", ""), catalog_index).matched
        ident = resolve_identity(_line("Y1", "Y1-SKU"), catalog_index)
        assert ident.matched
        assert ident.path is ResolutionPath.SECONDARY_FALLBACK
        assert ident.jan == "4900000000002"

    def test_unknown_code_falls_back_to_sku(self, catalog_index):
        ident = resolve_identity(_line("NEW-CODE", "x1"), catalog_index)
        assert ident.matched
        assert ident.jan == "4900000000001"

    def test_override_beats_row_lot_unit(self, catalog_index):
        assert resolve_identity(_line("X1", "", override="-6"), catalog_index).lot_unit == 6
        assert resolve_identity(_line("nope", "nope", override="-4"), catalog_index).lot_unit == 4
        assert resolve_identity(_line("X1", "", override="-9"), catalog_index).lot_unit == 2

    def test_custom_override_table(self, catalog_index):
        ident = resolve_identity(_line("X1", "", override="BOX"), catalog_index, lot_overrides={"BOX": 12})
        assert ident.lot_unit == 12

    def test_blank_catalog_name_uses_order_name(self):
        idx = CatalogIndex([CatalogRow("P", "P", "A1", "J1", 1, "")])
        assert resolve_identity(_line("P", "", name="from order"), idx).product_name == "from order"

    def test_resolution_is_idempotent(self, catalog_index):
        for line in (_line("X1", "S1"), _line("DUP", "x"), _line("", "s9", override="-2"), _line("Y1", "y1-sku")):
            assert resolve_identity(line, catalog_index) == resolve_identity(line, catalog_index)

    def test_catalog_order_does_not_change_ambiguous_outcome(self, catalog_values, schema):
        from services.reconcile.parse import catalog_rows_from_values
        rows = catalog_rows_from_values(catalog_values, schema.catalog)
        forward = resolve_identity(_line("DUP", "none"), CatalogIndex(rows))
        backward = resolve_identity(_line("DUP", "none"), CatalogIndex(list(reversed(rows))))
        assert forward == backward
        assert not forward.matched


def test_lot_override_lookup():
    assert lot_override(_line(override=" -2 "), None) == 2
    assert lot_override(_line(override=""), None) is None
    assert lot_override(_line(override="-2"), {}) is None
