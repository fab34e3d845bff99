"""
Civil Services Daily - application factory
Flask + PostgreSQL/SQLite JSON API serving the question feed
"""
import logging

from flask import Flask
from flask_cors import CORS

from csdaily.core.auth import AccountManager
from csdaily.core.catalog_manager import CatalogManager
from csdaily.core.config import Config
from csdaily.core.database import DatabaseManager
from csdaily.core.errors import register_error_handlers
from csdaily.core.question_manager import QuestionManager
from csdaily.routes import admin_bp, auth_bp, catalog_bp, main_bp, question_bp


def create_app(config_class=Config):
    """Application Factory Pattern"""
    app = Flask(__name__)
    app.config.from_object(config_class)

    _configure_logging(app)
    _configure_security(app, config_class)

    db_manager = _init_database(config_class)

    app.db_manager = db_manager
    app.account_manager = AccountManager(db_manager, config_class.ADMIN_EMAILS)
    app.question_manager = QuestionManager(
        db_manager,
        fetch_multiplier=config_class.QUESTION_FETCH_MULTIPLIER,
        max_count=config_class.MAX_GENERATE_COUNT,
    )
    app.catalog_manager = CatalogManager(db_manager)

    CORS(app, origins=config_class.CORS_ORIGINS)
    register_error_handlers(app)
    _register_blueprints(app)

    return app


def _configure_logging(app):
    level = logging.DEBUG if app.config.get('DEBUG') else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _configure_security(app, config_class):
    """Secret key / token secret settings"""
    if not app.config.get('SECRET_KEY'):
        if config_class.DEBUG:
            app.config['SECRET_KEY'] = 'dev-secret-key-change-in-production'
            app.logger.warning("Using the development SECRET_KEY. Set SECRET_KEY in production.")
        else:
            raise ValueError("SECRET_KEY environment variable is not set.")

    if not app.config.get('JWT_SECRET'):
        # Tokens are signed with SECRET_KEY unless a dedicated secret is given
        app.config['JWT_SECRET'] = app.config['SECRET_KEY']


def _init_database(config_class):
    """Database initialisation"""
    try:
        db_manager = DatabaseManager(config_class.get_db_config())
        db_manager.init_database()
        return db_manager
    except Exception as e:
        raise RuntimeError(f"Database initialisation error: {e}") from e


def _register_blueprints(app):
    """Blueprint registration"""
    for blueprint in (main_bp, auth_bp, question_bp, catalog_bp, admin_bp):
        app.register_blueprint(blueprint)


def load_initial_questions(app):
    """Load questions from the JSON folder when the library is empty"""
    with app.app_context():
        existing = app.db_manager.execute_query('SELECT COUNT(*) as count FROM questions')
        existing_total = existing[0]['count'] if existing else 0
        if existing_total > 0:
            app.logger.info(f"{existing_total} questions already in the database, skipping import.")
            return None

        folder = app.config['QUESTIONS_FOLDER']
        app.logger.info(f"Loading questions from {folder} ...")
        result = app.question_manager.load_json_folder(folder)
        for error in result['errors']:
            app.logger.warning(error)
        app.logger.info(
            f"Loaded {result['total_questions']} questions from {result['total_files']} file(s)"
        )
        return result
