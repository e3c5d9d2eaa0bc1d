import json

import pytest

from services.config_service import ConfigManager, SpreadsheetConfigUpdater


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"reconcile": {"catalog": {"sheet_id": "OLD"}, "staff": ["田中"]}}), encoding="utf-8")
    return path


def test_get_nested_and_dotted(config_path):
    cm = ConfigManager(str(config_path))
    assert cm.get("reconcile", "catalog", "sheet_id") == "OLD"
    assert cm.get("reconcile.catalog.sheet_id") == "OLD"
    assert cm.get("reconcile", "missing", default="x") == "x"


def test_invalid_json_loads_empty(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    cm = ConfigManager(str(path))
    assert cm.config == {}
    assert cm.last_load_error is not None


def test_missing_file_loads_empty(tmp_path):
    assert ConfigManager(str(tmp_path / "nope.json")).config == {}


def test_update_config_saves_only_on_change(config_path):
    cm = ConfigManager(str(config_path))
    assert cm.update_config(["reconcile", "catalog", "sheet_id"], "OLD") is False
    assert cm.update_config(["reconcile", "inventory", "sheet_id"], "NEW") is True
    saved = json.loads(config_path.read_text(encoding="utf-8"))
    assert saved["reconcile"]["inventory"]["sheet_id"] == "NEW"
    assert saved["reconcile"]["staff"] == ["田中"]


def test_spreadsheet_config_updater(config_path):
    cm = ConfigManager(str(config_path))
    updater = SpreadsheetConfigUpdater(cm)
    assert updater.update_spreadsheet_ids(catalog_id="CAT2", inventory_id="INV2") is True
    assert updater.update_spreadsheet_ids(catalog_id="CAT2") is False
    assert cm.get("reconcile.catalog.sheet_id") == "CAT2"
    assert cm.get("reconcile.inventory.sheet_id") == "INV2"
