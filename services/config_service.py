import json
import os
import logging
from typing import List


# Configure logging
logger = logging.getLogger(__name__)


class ConfigManager:
    def __init__(self, config_path="config.json"):
        self._config_path = config_path
        if os.path.isabs(config_path):
            self._resolved_path = config_path
        else:
            self._resolved_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), self._config_path)
        self._last_load_error = None
        self.config = self._load_config()

    @property
    def last_load_error(self):
        return self._last_load_error

    @property
    def resolved_path(self):
        return self._resolved_path

    def _load_config(self):
        """Load configuration from the file or initialize an empty config."""
        path = self._resolved_path
        if os.path.exists(path):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except json.JSONDecodeError as e:
                self._last_load_error = e
                logger.error(f"Invalid JSON in {path}. Loading empty configuration.")
        return {}

    def save_config(self):
        """Save the current configuration to the file."""
        try:
            with open(self._resolved_path, "w", encoding="utf-8") as f:
                json.dump(self.config, f, indent=4, ensure_ascii=False)
        except (OSError, IOError) as e:
            logger.error(f"Unable to save configuration to {self._config_path}. {e}")

    def update_config(self, keys: List[str], value):
        """Update a nested configuration key with a new value if it has changed."""
        config = self.config
        for key in keys[:-1]:
            if key not in config or not isinstance(config[key], dict):
                config[key] = {}
            config = config[key]

        last_key = keys[-1]
        if config.get(last_key) != value:
            config[last_key] = value
            self.save_config()
            return True
        return False

    def get(self, *keys, default=None):
        """
        Access nested values.
        Supports both:
          get("a", "b", "c")  and  get("a.b.c")
        """
        # Allow a single dotted string
        if len(keys) == 1 and isinstance(keys[0], str) and "." in keys[0]:
            keys = keys[0].split(".")

        node = self.config
        for k in keys:
            if isinstance(node, dict) and k in node:
                node = node[k]
            else:
                return default
        return node


class SpreadsheetConfigUpdater:
    def __init__(self, config_manager: ConfigManager):
        self.config_manager = config_manager

    def update_spreadsheet_ids(self, catalog_id=None, inventory_id=None):
        """Point the reconcile section at new catalog / inventory workbooks."""
        updated = False
        if catalog_id:
            if self.config_manager.update_config(["reconcile", "catalog", "sheet_id"], catalog_id):
                logger.info(f"Updated catalog spreadsheet ID to {catalog_id}")
                updated = True
        if inventory_id:
            if self.config_manager.update_config(["reconcile", "inventory", "sheet_id"], inventory_id):
                logger.info(f"Updated inventory spreadsheet ID to {inventory_id}")
                updated = True
        return updated
