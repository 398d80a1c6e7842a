"""
Tests for the ActiveRecord model scanner against the fixture Rails app.
"""
import hashlib

import pytest

from relation_resolver.model_parser import ActiveRecordModelParser
from relation_resolver.schema.cache import SchemaCache

from .conftest import RAILS_APP, RAILS_SCHEMA


@pytest.fixture
def result():
    return ActiveRecordModelParser().parse(RAILS_APP)


def _model(result, name):
    return next(m for m in result['models'] if m['name'] == name)


def _association(model, name):
    return next(a for a in model['associations'] if a['name'] == name)


class TestParseRailsApp:

    def test_only_active_record_classes(self, result):
        names = sorted(m['name'] for m in result['models'])
        assert names == ['ApplicationRecord', 'Author', 'Blog::Post', 'Comment', 'Legacy::Entry']

    def test_table_names(self, result):
        tables = {m['name']: m['table_name'] for m in result['models']}
        assert tables['Author'] == 'authors'
        assert tables['Blog::Post'] == 'blog_posts'
        assert tables['Comment'] == 'comments'
        assert tables['Legacy::Entry'] == 'legacy_blog_entries'

    def test_abstract_base(self, result):
        base = _model(result, 'ApplicationRecord')
        assert base['abstract'] is True
        assert base['table_found'] is False
        assert _model(result, 'Author')['abstract'] is False

    def test_tables_found_in_schema(self, result):
        for name in ('Author', 'Blog::Post', 'Comment', 'Legacy::Entry'):
            assert _model(result, name)['table_found'] is True

    def test_resolved_association_columns(self, result):
        post = _model(result, 'Blog::Post')
        assert _association(post, 'author')['columns'] == ['author_id']
        assert _association(post, 'owner')['columns'] == ['owner_id', 'owner_type']
        assert _association(post, 'writer')['columns'] == ['author_id']
        assert _association(post, 'reviewer')['columns'] == []

    def test_association_options(self, result):
        writer = _association(_model(result, 'Blog::Post'), 'writer')
        assert writer['foreign_key'] == 'author_id'
        assert writer['class_name'] == 'Author'
        assert writer['polymorphic'] is False
        assert writer['macro'] == 'belongs_to'

    def test_relationships(self, result):
        edges = {(r['from_table'], r['from_column'], r['to_table'], r['type'])
                 for r in result['relationships']}
        assert edges == {
            ('blog_posts', 'author_id', 'authors', 'many-to-one'),
            ('blog_posts', 'owner_id', '', 'polymorphic'),
            ('comments', 'commentable_id', '', 'polymorphic'),
            ('comments', 'post_id', 'blog_posts', 'many-to-one'),
        }
        assert all(r['to_column'] == 'id' for r in result['relationships'])

    def test_source_locations(self, result):
        post = _model(result, 'Blog::Post')
        assert post['source_file'].endswith('post.rb')
        assert post['line_number'] == 2

    def test_schema_checksum(self, result):
        with open(RAILS_SCHEMA, 'rb') as f:
            assert result['schema_checksum'] == hashlib.sha1(f.read()).hexdigest()


class TestParseWithoutSchema:

    def test_fallback_model_discovery(self, tmp_path):
        models_dir = tmp_path / 'lib' / 'models'
        models_dir.mkdir(parents=True)
        (models_dir / 'user.rb').write_text(
            'class User < ApplicationRecord\n'
            '  belongs_to :account\n'
            'end\n'
        )
        (tmp_path / 'lib' / 'tasks.rb').write_text('class Task < ApplicationRecord\nend\n')

        result = ActiveRecordModelParser().parse(str(tmp_path))

        assert [m['name'] for m in result['models']] == ['User']
        user = result['models'][0]
        assert user['table_name'] == 'users'
        assert user['table_found'] is False
        assert user['associations'][0]['columns'] == []
        assert result['relationships'] == []
        assert result['schema_checksum'] is None

    def test_unreadable_schema_is_reported_as_unavailable(self, tmp_path):
        (tmp_path / 'app' / 'models').mkdir(parents=True)
        (tmp_path / 'app' / 'models' / 'post.rb').write_text('class Post < ApplicationRecord\nend\n')
        parser = ActiveRecordModelParser(cache=SchemaCache(schema_path=str(tmp_path)))

        result = parser.parse(str(tmp_path))

        assert result['models'][0]['table_found'] is False
        assert result['schema_checksum'] is None

    def test_syntax_errors_do_not_raise(self):
        models = ActiveRecordModelParser().parse_source(
            'class Post < ApplicationRecord\n  belongs_to :author,\n', 'broken.rb', None)
        assert isinstance(models, list)
