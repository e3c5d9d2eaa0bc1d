import pytest
from base64 import b64encode
from app import create_app
from services.reconcile.api import ReconcileSettings
from services.reconcile.catalog import CatalogIndex
from services.reconcile.parse import catalog_rows_from_values
from services.reconcile.schema import ReconcileSchema
from test_helpers import FakeSheets, catalog_row, inventory_row, inventory_values


TEST_RECONCILE_CONFIG = {
    "catalog": {"sheet_id": "CATALOG", "range": "出品管理!A:R"},
    "inventory": {"sheet_id": "INVENTORY", "range_tail": "C3:AG", "excluded_tabs": ["設定"]},
    "lot_overrides": {"-2": 2, "-4": 4, "-6": 6},
    "aggregation_policy": "sum",
    "staff": ["田中", "木村"],
}


@pytest.fixture
def schema():
    return ReconcileSchema()


@pytest.fixture
def settings():
    """Settings pointing at the fake CATALOG / INVENTORY spreadsheets."""
    return ReconcileSettings.from_config(TEST_RECONCILE_CONFIG)


@pytest.fixture
def catalog_values():
    return [
        catalog_row(primary="X1", secondary="X1", asin="B000X1", jan="4900000000001", lot_unit="2", name="Green Tea 2-pack"),
        catalog_row(primary="DUP", secondary="DUP-OLD", asin="B000D1", jan="4900000000010", lot_unit="1", name="Soap (old box)"),
        catalog_row(primary="DUP", secondary="DUP-NEW", asin="B000D2", jan="4900000000011", lot_unit="3", name="Soap (new box)"),
        catalog_row(primary="Y1", secondary="y1-sku", asin="B000Y1", jan="4900000000002", lot_unit="", name="Coffee"),
        catalog_row(primary="", secondary="s9", asin="B000S9", jan="4900000000009", lot_unit="abc", name="Biscuits"),
    ]


@pytest.fixture
def catalog_index(catalog_values, schema):
    return CatalogIndex(catalog_rows_from_values(catalog_values, schema.catalog))


@pytest.fixture
def stock_values():
    """Inventory tab where the first column group (offset 7) is already used."""
    return inventory_values(
        inventory_row("Green Tea", "B000X1", "4900000000001", "10", ledger={7: "2024-01-01", 9: "12"}),
        inventory_row("Coffee", "B000Y1", "4900000000002", "1,250"),
        inventory_row("Biscuits", "B000S9", "4900000000009", "0"),
        inventory_row("Unsold", "B000ZZ", "4900000000099", "7"),
    )


@pytest.fixture
def fake_sheets(catalog_values, stock_values):
    return FakeSheets(catalog=catalog_values, inventory={"店舗A": stock_values, "設定": []})


@pytest.fixture
def app(fake_sheets):
    """Flask app wired to the fake sheets service."""
    app = create_app('Testing', overrides={
        "reconcile": TEST_RECONCILE_CONFIG,
        "USERS": {"testuser": "testpassword"},
    })
    app.extensions["sheets_service"] = fake_sheets
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers():
    """Fixture for authorization headers."""
    credentials = b64encode(b"testuser:testpassword").decode("utf-8")
    return {
        'Authorization': f'Basic {credentials}'
    }
