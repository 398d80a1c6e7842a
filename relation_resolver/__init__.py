from .active_record import (
    inherits_from_orm_base, is_orm_base_class, mount_table_name, table_name,
)
from .ast_query import find_all_descendants, find_first_descendant, in_where
from .errors import SchemaLoadError
from .model_parser import ActiveRecordModelParser
from .relations import AssociationDeclaration, find_belongs_to, resolve_relation_into_column
from .ruby_ast import find_class, parse_ruby
from .schema import Column, Schema, SchemaCache, Table, get_cached_checksum, get_schema

__all__ = [
    'inherits_from_orm_base', 'is_orm_base_class', 'mount_table_name', 'table_name',
    'find_all_descendants', 'find_first_descendant', 'in_where',
    'SchemaLoadError',
    'ActiveRecordModelParser',
    'AssociationDeclaration', 'find_belongs_to', 'resolve_relation_into_column',
    'find_class', 'parse_ruby',
    'Column', 'Schema', 'SchemaCache', 'Table', 'get_cached_checksum', 'get_schema',
]
