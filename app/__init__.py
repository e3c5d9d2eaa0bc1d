# /app/__init__.py
import os
import json
import logging
from flask import Flask
from dotenv import load_dotenv
from config import ProductionConfig
from services.config_service import ConfigManager
from services.reconcile.api import ReconcileSettings
from app.routes import main_routes_bp, inventory_bp


load_dotenv()


def init_sentry():
    """Initialize Sentry error tracking if SENTRY_DSN is configured."""
    sentry_dsn = os.getenv("SENTRY_DSN")
    if not sentry_dsn:
        return

    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.logging import LoggingIntegration

        environment = os.getenv("FLASK_ENV") or os.getenv("ENV") or "development"

        sentry_sdk.init(
            dsn=sentry_dsn,
            environment=environment,
            integrations=[
                FlaskIntegration(),
                LoggingIntegration(
                    level=logging.INFO,       # Capture info and above as breadcrumbs
                    event_level=logging.ERROR  # Send errors and above as events
                ),
            ],
            traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1")),
            attach_stacktrace=True,
            debug=os.getenv("SENTRY_DEBUG", "0") == "1",
        )
        logging.info(f"Sentry initialized for environment: {environment}")
    except ImportError:
        logging.warning("sentry-sdk not installed, error tracking disabled")
    except Exception as e:
        logging.error(f"Failed to initialize Sentry: {e}")


def create_app(config_name: str = "", overrides: dict | None = None):
    # Initialize Sentry before creating app to catch initialization errors
    init_sentry()

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(ProductionConfig)

    # Secret
    app.secret_key = os.getenv("FLASK_SECRET", os.urandom(24))

    if config_name:
        app.config.from_object(f"config.{config_name}Config")

    # Merge JSON config
    app.config.update(ConfigManager().config)

    # Users from env (optional)
    app.config["USERS"] = json.loads(os.getenv("USERS", "{}"))
    if overrides:
        app.config.update(overrides)

    # Logging (basic)
    logging.basicConfig(
        level=logging.DEBUG if app.config.get("DEBUG") else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,  # prevent duplicate handlers in some reload scenarios
    )

    # Column schema is validated here, once; a bad config.json stops the app from starting
    settings = ReconcileSettings.from_config(app.config.get("reconcile") or {})
    app.extensions["reconcile_settings"] = settings
    logging.debug(
        "reconcile: catalog=%s inventory=%s range=%s policy=%s",
        settings.catalog_sheet_id, settings.inventory_sheet_id,
        settings.schema.inventory.range_tail, settings.policy.value,
    )

    # Blueprints
    app.register_blueprint(main_routes_bp)
    app.register_blueprint(inventory_bp)

    return app
