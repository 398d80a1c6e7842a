"""
Rails schema loading.

Reads ``db/schema.rb`` (the schema dump Rails keeps in sync with migrations)
with regex-based analysis, or inspects a live database through SQLAlchemy
when only a connection URL is available. Only table and column names are
needed downstream; column types are kept as written.
"""

import logging
import os
import re
from pathlib import Path
from typing import List, Optional, Tuple

from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import SQLAlchemyError

from ..base import line_number_at, read_file_safe, strip_ruby_comments
from ..config import Config
from ..errors import SchemaLoadError
from .models import Column, Schema, Table

logger = logging.getLogger(__name__)

SCHEMA_RELATIVE_PATH = os.path.join('db', 'schema.rb')

# Tables Rails maintains for itself
INTERNAL_TABLES = frozenset({'schema_migrations', 'ar_internal_metadata'})

# ---------------------------------------------------------------------------
# Compiled regex patterns
# ---------------------------------------------------------------------------

# create_table "posts", force: :cascade do |t|
_CREATE_TABLE_RE = re.compile(
    r'create_table\s*\(?\s*(?::(\w+)|["\']([^"\']+)["\'])([^\n]*?)\)?\s+do\s*\|(\w+)\|',
    re.MULTILINE,
)

# Column definitions inside create_table block:
#   t.string "title", null: false
_COLUMN_RE = re.compile(
    r'(\w+)\.(string|text|integer|bigint|float|decimal|boolean|date|datetime'
    r'|time|timestamp|timestamptz|binary|blob|references|belongs_to|column|json|jsonb'
    r'|uuid|inet|cidr|macaddr|hstore|citext|interval|numeric|virtual'
    r'|numrange|tsrange|tstzrange|daterange|int4range|int8range|point|line'
    r'|xml|money|bit|bit_varying|ltree|enum)\s*\(?\s*(?::(\w+)|["\']([^"\']+)["\'])'
    r'((?:\s*,\s*[^\n]*)?)',
    re.MULTILINE,
)

# t.timestamps (no column name, adds created_at and updated_at)
_TIMESTAMPS_RE = re.compile(r'(\w+)\.timestamps\b', re.MULTILINE)

# Option extractors
_NULL_FALSE_RE = re.compile(r'null:\s*false')
_POLYMORPHIC_RE = re.compile(r'polymorphic:\s*true')
_ID_FALSE_RE = re.compile(r'\bid:\s*false')
_ID_TYPE_RE = re.compile(r'\bid:\s*:(\w+)')
_PRIMARY_KEY_RE = re.compile(r'primary_key:\s*(?::(\w+)|["\']([^"\']+)["\'])')
_COLUMN_TYPE_RE = re.compile(r'^\s*,\s*:(\w+)')

_BLOCK_OPENERS_RE = re.compile(
    r'\b(do|def|class|module|if|unless|while|until|for|case|begin)\b'
)
_BLOCK_CLOSER_RE = re.compile(r'\bend\b')

# String literals and symbols, blanked before counting block keywords
_LITERAL_RE = re.compile(
    r"'(?:\\.|[^'\\])*'"
    r'|"(?:\\.|[^"\\])*"'
    r'|(?<!:):\w+'
)


# ---------------------------------------------------------------------------
# Schema discovery
# ---------------------------------------------------------------------------

def db_schema_path(root: Optional[str] = None) -> Optional[str]:
    """Locate the schema file.

    An explicit ``Config.SCHEMA_PATH`` wins when it points at a file.
    Otherwise root (default: the current directory) and each of its parents
    are searched for ``db/schema.rb``.
    """
    if Config.SCHEMA_PATH:
        if os.path.isfile(Config.SCHEMA_PATH):
            return Config.SCHEMA_PATH
        logger.warning("Configured schema path %s does not exist", Config.SCHEMA_PATH)

    start = Path(root) if root else Path.cwd()
    for directory in [start, *start.resolve().parents]:
        candidate = directory / SCHEMA_RELATIVE_PATH
        if candidate.is_file():
            return str(candidate)
    return None


def load(target_ruby_version: Optional[str] = None, path: Optional[str] = None,
         root: Optional[str] = None) -> Optional[Schema]:
    """Load the schema file into a Schema.

    Returns None when no schema file is found. Raises SchemaLoadError when
    the file exists but cannot be read.
    """
    path = path or db_schema_path(root)
    if path is None:
        return None

    content = read_file_safe(path)
    if content is None:
        raise SchemaLoadError(f"Cannot read schema file {path}", source=path)

    tables = parse_schema(content)
    logger.debug("Loaded %d tables from %s", len(tables), path)
    return Schema(tables=tuple(tables), source=path,
                  target_ruby_version=target_ruby_version or Config.TARGET_RUBY_VERSION)


def load_from_database(url: str, target_ruby_version: Optional[str] = None) -> Schema:
    """Build a Schema by inspecting a live database.

    Only table and column names plus nullability are read; types are the
    inspector's rendering and carry no adapter-specific meaning here.
    """
    try:
        engine = create_engine(url)
    except (SQLAlchemyError, ValueError) as e:
        raise SchemaLoadError(f"Invalid database URL: {e}", source=url) from e

    try:
        inspector = inspect(engine)
        tables = []
        for table_name in sorted(inspector.get_table_names()):
            if table_name in INTERNAL_TABLES:
                continue
            columns = tuple(
                Column(name=col['name'], type=str(col['type']).lower(),
                       nullable=bool(col.get('nullable', True)))
                for col in inspector.get_columns(table_name)
            )
            tables.append(Table(name=table_name, columns=columns))
    except SQLAlchemyError as e:
        logger.error("Database inspection failed for %s: %s", engine.url, e)
        raise SchemaLoadError(f"Database inspection failed: {e}", source=url) from e
    finally:
        engine.dispose()

    logger.debug("Inspected %d tables from %s", len(tables), engine.url)
    return Schema(tables=tuple(tables), source=url,
                  target_ruby_version=target_ruby_version or Config.TARGET_RUBY_VERSION)


# ---------------------------------------------------------------------------
# schema.rb parsing
# ---------------------------------------------------------------------------

def parse_schema(content: str) -> List[Table]:
    """Parse every create_table block of a schema.rb source."""
    stripped = strip_ruby_comments(content)
    code = _LITERAL_RE.sub(lambda m: ' ' * len(m.group(0)), stripped)
    tables: List[Table] = []

    for match in _CREATE_TABLE_RE.finditer(stripped):
        table_name = match.group(1) or match.group(2)
        options = match.group(3) or ''
        block_var = match.group(4)

        block_body = _extract_do_block(stripped, match.end(), code)
        if block_body is None:
            logger.warning("Unterminated create_table %s at line %d",
                           table_name, line_number_at(content, match.start()))
            continue

        columns = _primary_key_columns(options) + _parse_columns(block_body, block_var)
        tables.append(Table(name=table_name, columns=tuple(columns)))

    return tables


def _extract_do_block(content: str, start_pos: int,
                      code: Optional[str] = None) -> Optional[str]:
    """Extract the body of a Ruby do...end block starting from start_pos.

    Block keywords are counted in code, a copy of content with literals
    blanked, so a column named "class" or :end opens or closes nothing.
    """
    if code is None:
        code = content
    depth = 1
    i = start_pos

    while i < len(content):
        opener = _BLOCK_OPENERS_RE.search(code, i)
        closer = _BLOCK_CLOSER_RE.search(code, i)

        if closer is None:
            return None

        if opener and opener.start() < closer.start():
            depth += 1
            i = opener.end()
        else:
            depth -= 1
            if depth == 0:
                return content[start_pos:closer.start()]
            i = closer.end()

    return None


def _primary_key_columns(options: str) -> List[Column]:
    """Implicit primary key from create_table options.

    Rails adds a bigint ``id`` unless ``id: false``; ``id: :uuid`` changes
    its type and ``primary_key:`` its name.
    """
    if _ID_FALSE_RE.search(options):
        return []
    pk_match = _PRIMARY_KEY_RE.search(options)
    pk_name = (pk_match.group(1) or pk_match.group(2)) if pk_match else 'id'
    type_match = _ID_TYPE_RE.search(options)
    pk_type = type_match.group(1) if type_match else 'bigint'
    return [Column(name=pk_name, type=pk_type, nullable=False)]


def _parse_columns(block_body: str, block_var: str) -> List[Column]:
    """Parse column definitions from a create_table block body."""
    columns: List[Column] = []

    for match in _COLUMN_RE.finditer(block_body):
        if match.group(1) != block_var:
            continue

        col_type = match.group(2)
        col_name = match.group(3) or match.group(4)
        options = match.group(5) or ''
        nullable = not _NULL_FALSE_RE.search(options)

        if col_type in ('references', 'belongs_to'):
            columns.extend(_reference_columns(col_name, options, nullable))
            continue

        if col_type == 'column':
            type_match = _COLUMN_TYPE_RE.match(options)
            col_type = type_match.group(1) if type_match else ''

        columns.append(Column(name=col_name, type=col_type, nullable=nullable))

    if _timestamps_declared(block_body, block_var):
        columns.append(Column(name='created_at', type='datetime', nullable=False))
        columns.append(Column(name='updated_at', type='datetime', nullable=False))

    return columns


def _reference_columns(name: str, options: str, nullable: bool) -> Tuple[Column, ...]:
    """``t.references :owner`` -> owner_id, plus owner_type when polymorphic."""
    fk = Column(name=f'{name}_id', type='bigint', nullable=nullable)
    if _POLYMORPHIC_RE.search(options):
        return fk, Column(name=f'{name}_type', type='string', nullable=nullable)
    return (fk,)


def _timestamps_declared(block_body: str, block_var: str) -> bool:
    return any(m.group(1) == block_var for m in _TIMESTAMPS_RE.finditer(block_body))
