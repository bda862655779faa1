from routes.appointments import appointments_bp
from routes.planning import planning_bp
from routes.presences import presences_bp
from routes.settings import settings_bp
from routes.statistics import statistics_bp
from routes.users import users_bp

BLUEPRINTS = (appointments_bp, planning_bp, presences_bp, settings_bp, statistics_bp, users_bp)


def register_blueprints(app, url_prefix="/api"):
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=url_prefix)
