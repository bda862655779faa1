import logging

from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate
from flasgger import Swagger

from cli import register_commands
from config import Config
from errors import register_error_handlers
from models import db
from routes import register_blueprints

migrate = Migrate()


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config())

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    Swagger(app)
    CORS(app)

    # Initialisation de la base de données et de Flask-Migrate
    db.init_app(app)
    migrate.init_app(app, db)

    register_error_handlers(app, db)
    register_blueprints(app)
    register_commands(app)
    return app


if __name__ == "__main__":
    create_app().run(debug=True)
