import logging

from relation_resolver.config import Config, configure_logging


def test_defaults_are_patched_per_test():
    assert Config.SCHEMA_PATH is None
    assert Config.DATABASE_URL is None
    assert Config.TARGET_RUBY_VERSION == '2.7'


def test_configure_logging_sets_level_once(monkeypatch):
    package_logger = logging.getLogger('relation_resolver')
    monkeypatch.setattr(package_logger, 'handlers', [])
    monkeypatch.setattr(package_logger, 'level', package_logger.level)

    configure_logging('debug')
    configure_logging('info')

    assert package_logger.level == logging.INFO
    assert len(package_logger.handlers) == 1
