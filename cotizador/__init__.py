import os
import logging
from flask import Flask, redirect, url_for, render_template
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from dotenv import load_dotenv

from .config import DevConfig, ProdConfig, TestConfig

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()


def create_app(config_name: str | None = None) -> Flask:
    """Application factory with environment based configuration."""
    load_dotenv()

    package_root = os.path.abspath(os.path.dirname(__file__))
    app = Flask(
        __name__,
        static_folder=os.path.join(package_root, 'static'),
        static_url_path='/static',
        instance_relative_config=True,
    )
    os.makedirs(app.instance_path, exist_ok=True)

    # Pick configuration
    env = config_name or os.getenv('ENV') or os.getenv('FLASK_ENV') or 'production'
    if env == 'testing':
        cfg_cls = TestConfig
    elif env == 'development':
        cfg_cls = DevConfig
    else:
        cfg_cls = ProdConfig
    app.config.from_object(cfg_cls)
    if not app.config.get('EXPORT_DIR'):
        app.config['EXPORT_DIR'] = os.path.join(app.instance_path, 'exports')

    # Initialise logging
    logging.basicConfig(level=logging.DEBUG if app.debug else logging.INFO)

    db.init_app(app)
    migrate.init_app(app, db)

    # Ensure models loaded so tables can be created
    from cotizador import models  # noqa
    with app.app_context():
        db.create_all()

    @app.route('/')
    def index():
        return redirect(url_for('quotes.edit_quote'))

    @app.errorhandler(404)
    def not_found(_):
        return render_template('errors/404.html'), 404

    @app.errorhandler(500)
    def server_error(_):
        return render_template('errors/500.html'), 500

    from cotizador.quotes.routes import bp as quotes_bp, init_quote_state

    app.register_blueprint(quotes_bp, url_prefix='/quotes')
    init_quote_state(app)

    return app
