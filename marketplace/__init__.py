from flask import Flask
from flask_migrate import Migrate
from flask_login import LoginManager
from marketplace.extensions import db
from marketplace.config import Config
from marketplace.errors import register_error_handlers
from marketplace.middleware import setup_auth_middleware
from marketplace.realtime import ConversationRegistry
import logging

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

migrate = Migrate()
login_manager = LoginManager()


def configure_logging(app):
    handlers = [logging.StreamHandler()]
    if app.config.get('LOG_FILE'):
        handlers.append(logging.FileHandler(app.config['LOG_FILE']))
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT,
                        handlers=handlers)

    major_logger = logging.getLogger('major_events')
    major_file = app.config.get('MAJOR_EVENTS_LOG_FILE')
    if major_file and not major_logger.handlers:
        handler = logging.FileHandler(major_file)
        handler.setFormatter(
            logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        major_logger.addHandler(handler)
        major_logger.setLevel(logging.INFO)
        major_logger.propagate = False


def create_app(config_class=Config, registry=None):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    app.extensions['conversation_registry'] = (
        registry if registry is not None else ConversationRegistry()
    )

    from marketplace.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    # Register blueprints
    from marketplace.blueprints import (
        admin,
        auth,
        cart,
        design_approvals,
        orders,
        quotes,
        returns,
    )

    app.register_blueprint(auth.bp)
    app.register_blueprint(quotes.bp)
    app.register_blueprint(design_approvals.bp)
    app.register_blueprint(cart.bp)
    app.register_blueprint(orders.bp)
    app.register_blueprint(returns.bp)
    app.register_blueprint(admin.bp)

    from marketplace.cli import register_commands
    register_commands(app)

    register_error_handlers(app)

    # Every /api/ route needs a session except login
    setup_auth_middleware(app)

    # Note: Database tables are managed via Flask-Migrate
    # Use 'flask db upgrade' to create/update tables

    logger.info("Flask application initialized")
    return app
