"""
Health check routes
"""
from flask import Blueprint, current_app, jsonify

from csdaily import __version__

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """Health check endpoint"""
    database_ok = current_app.db_manager.ping()
    body = {
        'status': 'healthy' if database_ok else 'degraded',
        'database': 'ok' if database_ok else 'unavailable',
        'version': __version__,
    }
    return jsonify(body), 200 if database_ok else 503
