import logging
import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    # Explicit schema file; when unset db/schema.rb is searched upward from the cwd
    SCHEMA_PATH = os.environ.get('RELATION_RESOLVER_SCHEMA_PATH')
    DATABASE_URL = os.environ.get('DATABASE_URL')
    TARGET_RUBY_VERSION = os.environ.get('TARGET_RUBY_VERSION', '2.7')
    MODELS_DIR = os.environ.get('MODELS_DIR') or os.path.join('app', 'models')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'WARNING')


def configure_logging(level: str = None):
    """Attach a stream handler to the package logger at the configured level."""
    package_logger = logging.getLogger('relation_resolver')
    package_logger.setLevel((level or Config.LOG_LEVEL).upper())
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s'))
        package_logger.addHandler(handler)
    return package_logger
