from flask import Blueprint, jsonify, current_app, url_for, Response
import logging
from services.auth import auth


# Create Blueprint
main_routes_bp = Blueprint('main_routes', __name__)

# Get logger
logger = logging.getLogger(__name__)


@auth.verify_password
def verify_password(username, password):
    users = current_app.config['USERS']
    if username in users and users[username] == password:
        return username


@main_routes_bp.route('/')
@auth.login_required
def homepage():
    settings = current_app.extensions["reconcile_settings"]
    return jsonify({
        "user": auth.current_user(),
        "inventorySheets": url_for("inventory.sheets"),
        "aggregate": url_for("inventory.aggregate"),
        "update": url_for("inventory.update"),
        "aggregationPolicy": settings.policy.value,
        "staff": list(settings.staff),
    })


@main_routes_bp.route('/robots.txt')
def robots_txt():
    return Response("User-agent: *\nDisallow: /\n", mimetype="text/plain")
