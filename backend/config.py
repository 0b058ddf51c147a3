import os
from dotenv import load_dotenv

load_dotenv()


def _get_database_url():
    """
    Get DATABASE_URL, defaulting to a local SQLite file for development.

    Handles the legacy postgres:// scheme some hosts still hand out
    (SQLAlchemy requires postgresql://).
    """
    database_url = os.getenv('DATABASE_URL', 'sqlite:///houseprices.db')

    if database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql://', 1)

    return database_url


def _engine_options(database_url):
    if database_url.startswith('sqlite'):
        # Sub-queries run on worker threads, each with its own session
        return {'connect_args': {'check_same_thread': False}}

    return {
        'pool_pre_ping': True,      # Verify connection is alive before using
        'pool_recycle': 300,        # Recycle connections every 5 minutes
        'pool_timeout': 30,
        'pool_size': 5,
        'max_overflow': 10,
    }


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key')
    DEBUG = os.getenv('FLASK_DEBUG', 'False').lower() == 'true'
    TESTING = False
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    SQLALCHEMY_DATABASE_URI = _get_database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI)

    # Reference years for the growth / profit comparison
    BASE_YEAR = int(os.getenv('BASE_YEAR', '1995'))
    LATEST_YEAR = int(os.getenv('LATEST_YEAR', '2014'))
    # Cumulative inflation between BASE_YEAR and LATEST_YEAR
    INFLATION_RATE = float(os.getenv('INFLATION_RATE', '0.74'))

    # National trend changes rarely, so it is cached process-wide
    NATIONAL_TREND_TTL_SECONDS = int(os.getenv('NATIONAL_TREND_TTL_SECONDS', '3600'))

    QUERY_TIMEOUT_SECONDS = float(os.getenv('QUERY_TIMEOUT_SECONDS', '10'))
    QUERY_RETRY_ATTEMPTS = int(os.getenv('QUERY_RETRY_ATTEMPTS', '3'))
    QUERY_RETRY_BASE_SLEEP = float(os.getenv('QUERY_RETRY_BASE_SLEEP', '0.25'))


class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options('sqlite://')
    NATIONAL_TREND_TTL_SECONDS = 60
    QUERY_TIMEOUT_SECONDS = 5
    QUERY_RETRY_ATTEMPTS = 2
    QUERY_RETRY_BASE_SLEEP = 0.0
