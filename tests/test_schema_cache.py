"""
Tests for the single-slot schema cache.
"""
import hashlib
import shutil
import threading
import time

import pytest

from relation_resolver.config import Config
from relation_resolver.errors import SchemaLoadError
from relation_resolver.schema import cache as cache_module
from relation_resolver.schema import loader
from relation_resolver.schema.cache import SchemaCache, get_cached_checksum, get_schema

from .conftest import RAILS_SCHEMA


def _sha1(path):
    with open(path, 'rb') as f:
        return hashlib.sha1(f.read()).hexdigest()


@pytest.fixture
def read_counter(monkeypatch):
    """Count schema file reads made for checksums"""
    calls = []
    original = cache_module._read_schema_source

    def counting(path):
        calls.append(path)
        return original(path)

    monkeypatch.setattr(cache_module, '_read_schema_source', counting)
    return calls


@pytest.fixture
def load_counter(monkeypatch):
    calls = []
    original = loader.load

    def counting(*args, **kwargs):
        calls.append((args, kwargs))
        return original(*args, **kwargs)

    monkeypatch.setattr(loader, 'load', counting)
    return calls


class TestChecksum:

    def test_sha1_of_schema_file(self):
        assert SchemaCache(schema_path=RAILS_SCHEMA).checksum() == _sha1(RAILS_SCHEMA)

    def test_file_read_once(self, read_counter):
        cache = SchemaCache(schema_path=RAILS_SCHEMA)
        results = {cache.checksum() for _ in range(5)}
        assert results == {_sha1(RAILS_SCHEMA)}
        assert len(read_counter) == 1

    def test_no_schema_file(self, tmp_path, read_counter):
        cache = SchemaCache(root=str(tmp_path))
        assert cache.checksum() is None
        assert cache.checksum() is None
        assert read_counter == []

    def test_memoized_until_reset(self, tmp_path):
        schema_file = tmp_path / 'db' / 'schema.rb'
        schema_file.parent.mkdir()
        shutil.copy(RAILS_SCHEMA, schema_file)
        cache = SchemaCache(root=str(tmp_path))
        before = cache.checksum()

        schema_file.write_text('create_table "other" do |t|\nend\n')
        assert cache.checksum() == before

        cache.reset()
        assert cache.checksum() == _sha1(schema_file)
        assert cache.checksum() != before

    def test_unreadable_schema(self, tmp_path):
        with pytest.raises(SchemaLoadError):
            SchemaCache(schema_path=str(tmp_path)).checksum()

    def test_concurrent_first_callers_read_once(self, monkeypatch):
        calls = []
        original = cache_module._read_schema_source

        def slow_read(path):
            calls.append(path)
            time.sleep(0.05)
            return original(path)

        monkeypatch.setattr(cache_module, '_read_schema_source', slow_read)
        cache = SchemaCache(schema_path=RAILS_SCHEMA)
        results = []
        threads = [threading.Thread(target=lambda: results.append(cache.checksum()))
                   for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert results == [_sha1(RAILS_SCHEMA)] * 8


class TestSchema:

    def test_loaded_once(self, load_counter):
        cache = SchemaCache(schema_path=RAILS_SCHEMA)
        first = cache.schema()
        assert cache.schema() is first
        assert first.table_by('blog_posts') is not None
        assert len(load_counter) == 1

    def test_first_target_version_fixes_slot(self):
        cache = SchemaCache(schema_path=RAILS_SCHEMA)
        assert cache.schema('3.3').target_ruby_version == '3.3'
        assert cache.schema('2.7').target_ruby_version == '3.3'

    def test_default_target_version(self):
        assert SchemaCache(schema_path=RAILS_SCHEMA).schema().target_ruby_version == '2.7'

    def test_no_source(self, tmp_path, load_counter):
        cache = SchemaCache(root=str(tmp_path))
        assert cache.schema() is None
        assert cache.schema() is None
        assert load_counter == []

    def test_reset_reloads(self, load_counter):
        cache = SchemaCache(schema_path=RAILS_SCHEMA)
        first = cache.schema()
        cache.reset()
        second = cache.schema()
        assert second == first
        assert second is not first
        assert len(load_counter) == 2

    def test_failed_load_leaves_slot_empty(self, tmp_path, load_counter):
        cache = SchemaCache(schema_path=str(tmp_path))
        for _ in range(2):
            with pytest.raises(SchemaLoadError):
                cache.schema()
        assert len(load_counter) == 2

    def test_database_fallback(self, tmp_path):
        from sqlalchemy import create_engine, text

        url = f"sqlite:///{tmp_path / 'app.sqlite3'}"
        engine = create_engine(url)
        with engine.begin() as conn:
            conn.execute(text('CREATE TABLE users (id INTEGER PRIMARY KEY, login VARCHAR)'))
        engine.dispose()

        cache = SchemaCache(root=str(tmp_path), database_url=url)
        assert cache.schema().table_by('users').with_column('login')
        assert cache.checksum() is None

    def test_configured_database_url(self, tmp_path, monkeypatch):
        from sqlalchemy import create_engine, text

        url = f"sqlite:///{tmp_path / 'app.sqlite3'}"
        engine = create_engine(url)
        with engine.begin() as conn:
            conn.execute(text('CREATE TABLE accounts (id INTEGER PRIMARY KEY)'))
        engine.dispose()

        monkeypatch.setattr(Config, 'DATABASE_URL', url)
        assert SchemaCache(root=str(tmp_path)).schema().table_names == ('accounts',)


class TestProcessWideCache:

    def test_module_helpers_share_one_slot(self, monkeypatch, read_counter, load_counter):
        monkeypatch.setattr(Config, 'SCHEMA_PATH', RAILS_SCHEMA)
        assert get_cached_checksum() == _sha1(RAILS_SCHEMA)
        assert get_cached_checksum() == _sha1(RAILS_SCHEMA)
        assert get_schema('3.0') is get_schema()
        assert len(read_counter) == 1
        assert len(load_counter) == 1
