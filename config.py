import logging
import os

import requests
from dotenv import load_dotenv

# Charger les variables d'environnement depuis le fichier .env
load_dotenv()

logger = logging.getLogger(__name__)

SERVICE_NAME = os.getenv('SERVICE_NAME', 'rendezvous-service')
PROFILE = os.getenv('PROFILE', 'default')


def fetch_remote_datasource(config_server_url, service_name=SERVICE_NAME, profile=PROFILE):
    """Lire la source de données depuis un Spring Cloud Config server.

    Retourne un dict vide si le serveur est injoignable ou ne renvoie
    aucune propertySource.
    """
    config_url = f"{config_server_url}/{service_name}/{profile}"
    try:
        response = requests.get(config_url, timeout=5)
        response.raise_for_status()
        config_data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("Config server unreachable at %s: %s", config_url, e)
        return {}

    property_sources = config_data.get('propertySources', [])
    if not property_sources:
        logger.warning("No propertySources returned by %s", config_url)
        return {}

    source = property_sources[0]['source']
    return {
        'DB_HOST': source.get('spring.datasource.url'),
        'DB_USER': source.get('spring.datasource.username'),
        'DB_PASSWORD': source.get('spring.datasource.password'),
        'DB_NAME': source.get('spring.datasource.dbname'),
    }


def build_database_uri(env=None):
    env = os.environ if env is None else env
    if env.get('DATABASE_URL'):
        return env['DATABASE_URL']

    values = {
        'DB_HOST': env.get('DB_HOST', 'localhost'),
        'DB_USER': env.get('DB_USER', 'root'),
        'DB_PASSWORD': env.get('DB_PASSWORD', ''),
        'DB_NAME': env.get('DB_NAME', 'gestion_rendezvous'),
    }
    config_server_url = env.get('CONFIG_SERVER_URL')
    if config_server_url:
        remote = fetch_remote_datasource(config_server_url)
        values.update({k: v for k, v in remote.items() if v})

    if values['DB_PASSWORD']:
        return (f"mysql+pymysql://{values['DB_USER']}:{values['DB_PASSWORD']}"
                f"@{values['DB_HOST']}/{values['DB_NAME']}")
    return f"mysql+pymysql://{values['DB_USER']}@{values['DB_HOST']}/{values['DB_NAME']}"


class Config:
    SERVICE_NAME = SERVICE_NAME
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET = os.getenv('JWT_SECRET', 'change-me')
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRES_HOURS = int(os.getenv('JWT_EXPIRES_HOURS', '12'))
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    # Dépassement significatif au-delà de ce nombre de minutes
    OVERRUN_THRESHOLD_MINUTES = int(os.getenv('OVERRUN_THRESHOLD_MINUTES', '5'))
    # Tolérance de ponctualité pour les statistiques
    PUNCTUALITY_TOLERANCE_MINUTES = 5
    DEFAULT_PAGE_SIZE = 10
    SWAGGER = {'title': 'Rendez-vous & présences API', 'uiversion': 3}

    def __init__(self):
        self.SQLALCHEMY_DATABASE_URI = build_database_uri()


class TestConfig(Config):
    TESTING = True
    JWT_SECRET = 'test-secret'
    LOG_LEVEL = 'WARNING'

    def __init__(self):
        self.SQLALCHEMY_DATABASE_URI = 'sqlite://'
