from .main import main_routes_bp
from .inventory import inventory_bp

__all__ = ["main_routes_bp", "inventory_bp"]
