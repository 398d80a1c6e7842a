import os
import textwrap

import pytest

from relation_resolver.config import Config
from relation_resolver.ruby_ast import class_nodes, find_class, parse_ruby
from relation_resolver.schema.cache import reset_schema_cache

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), 'fixtures')
RAILS_APP = os.path.join(FIXTURES_DIR, 'rails_app')
RAILS_SCHEMA = os.path.join(RAILS_APP, 'db', 'schema.rb')


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep tests independent of the developer's environment and .env file"""
    monkeypatch.setattr(Config, 'SCHEMA_PATH', None)
    monkeypatch.setattr(Config, 'DATABASE_URL', None)
    monkeypatch.setattr(Config, 'TARGET_RUBY_VERSION', '2.7')
    reset_schema_cache()
    yield
    reset_schema_cache()


@pytest.fixture
def ruby_class():
    """Parse Ruby source and return a class node.

    With a name, the class whose nested name matches is returned; otherwise
    the first class in the source.
    """
    def _parse(source, name=None):
        root = parse_ruby(textwrap.dedent(source)).root_node
        if name is not None:
            return find_class(root, name)
        return next(class_nodes(root))
    return _parse
