from .models import Column, Schema, Table
from .loader import db_schema_path, load, load_from_database, parse_schema
from .cache import SchemaCache, get_cached_checksum, get_schema, reset_schema_cache, schema_cache

__all__ = [
    'Column', 'Schema', 'Table',
    'db_schema_path', 'load', 'load_from_database', 'parse_schema',
    'SchemaCache', 'get_cached_checksum', 'get_schema', 'reset_schema_cache', 'schema_cache',
]
