"""
Routing module
"""
from .main_routes import main_bp
from .auth_routes import auth_bp
from .question_routes import question_bp
from .catalog_routes import catalog_bp
from .admin_routes import admin_bp

__all__ = ['main_bp', 'auth_bp', 'question_bp', 'catalog_bp', 'admin_bp']
