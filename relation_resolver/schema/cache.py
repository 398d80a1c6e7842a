"""
Process-wide memoization of the schema and its checksum.

The schema file is read at most once per slot fill: the first caller
computes and stores the value under a lock, later callers only read it.
Nothing is invalidated automatically; call ``reset()`` after the schema
changes.
"""

import hashlib
import logging
import threading
from typing import Optional

from ..config import Config
from ..errors import SchemaLoadError
from . import loader
from .models import Schema

logger = logging.getLogger(__name__)

_UNSET = object()


def _read_schema_source(path: str) -> bytes:
    with open(path, 'rb') as f:
        return f.read()


class SchemaCache:
    """Single-slot cache for the schema checksum and the parsed schema.

    Args:
        schema_path: Explicit schema file. Defaults to discovery via
            ``loader.db_schema_path``.
        root: Directory discovery starts from. Defaults to the cwd.
        database_url: Database to inspect when no schema file exists.
            Defaults to ``Config.DATABASE_URL``.
    """

    def __init__(self, schema_path: Optional[str] = None, root: Optional[str] = None,
                 database_url: Optional[str] = None):
        self.schema_path = schema_path
        self.root = root
        self.database_url = database_url
        self._lock = threading.Lock()
        self._checksum = _UNSET
        self._schema = _UNSET

    def _resolve_path(self) -> Optional[str]:
        return self.schema_path or loader.db_schema_path(self.root)

    def checksum(self) -> Optional[str]:
        """SHA-1 hex digest of the schema file, or None when there is none."""
        if self._checksum is _UNSET:
            with self._lock:
                if self._checksum is _UNSET:
                    self._checksum = self._compute_checksum()
        return self._checksum

    def _compute_checksum(self) -> Optional[str]:
        path = self._resolve_path()
        if path is None:
            logger.debug("No schema file found, checksum unavailable")
            return None
        try:
            source = _read_schema_source(path)
        except OSError as e:
            logger.warning("Cannot read schema file %s: %s", path, e)
            raise SchemaLoadError(f"Cannot read schema file {path}", source=path) from e
        return hashlib.sha1(source).hexdigest()

    def schema(self, target_ruby_version: Optional[str] = None) -> Optional[Schema]:
        """The loaded schema, or None when no schema source is available.

        The first successful call fixes the slot, including the target
        version it was parsed for. A SchemaLoadError leaves the slot empty.
        """
        if self._schema is _UNSET:
            with self._lock:
                if self._schema is _UNSET:
                    self._schema = self._load(target_ruby_version or Config.TARGET_RUBY_VERSION)
        return self._schema

    def _load(self, target_ruby_version: str) -> Optional[Schema]:
        path = self._resolve_path()
        if path is not None:
            return loader.load(target_ruby_version, path=path)

        database_url = self.database_url or Config.DATABASE_URL
        if database_url:
            return loader.load_from_database(database_url, target_ruby_version)

        logger.debug("No schema source available")
        return None

    def reset(self):
        """Empty both slots so the next access reloads."""
        with self._lock:
            self._checksum = _UNSET
            self._schema = _UNSET


schema_cache = SchemaCache()


def get_cached_checksum() -> Optional[str]:
    return schema_cache.checksum()


def get_schema(target_ruby_version: Optional[str] = None) -> Optional[Schema]:
    return schema_cache.schema(target_ruby_version)


def reset_schema_cache():
    schema_cache.reset()
