"""
ActiveRecord model scanner.

Parses model sources (app/models/) with tree-sitter and reports, for every
class backed by ActiveRecord, its table name and the columns behind each of
its ``belongs_to`` associations, resolved against the loaded schema.
"""

import logging
import os
from typing import Dict, List, Optional

import inflection
from tree_sitter import Node

from .active_record import inherits_from_orm_base, table_name
from .ast_query import find_first_descendant, is_send, literal_value, method_name, first_argument, receiver
from .base import BaseModelParser, find_source_files, read_file_safe
from .config import Config
from .errors import SchemaLoadError
from .relations import association_declarations, resolve_relation_into_column, resolved_columns
from .ruby_ast import class_nodes, nested_name, parse_ruby
from .schema.cache import SchemaCache
from .schema.models import Schema

logger = logging.getLogger(__name__)


def _is_abstract_class_assignment(node: Node) -> bool:
    if not is_send(node) or method_name(node) != 'abstract_class=':
        return False
    target = receiver(node)
    return target is not None and target.type == 'self' and literal_value(first_argument(node)) is True


class ActiveRecordModelParser(BaseModelParser):
    """Report ActiveRecord models with their tables and association columns."""

    FILE_EXTENSIONS = ['.rb']

    def __init__(self, cache: Optional[SchemaCache] = None):
        self.cache = cache

    def parse(self, project_path: str) -> Dict:
        """Parse model files under project_path.

        Looks in the configured models directory (default app/models/) and
        falls back to every Ruby file with "model" in its path.

        Returns:
            Standardized dict with models, relationships and schema checksum.
        """
        cache = self.cache or SchemaCache(root=project_path)
        schema = self._load_schema(cache)
        checksum = cache.checksum() if schema is not None else None

        models_dir = os.path.join(project_path, Config.MODELS_DIR)
        if os.path.isdir(models_dir):
            model_files = self.find_files(models_dir)
        else:
            model_files = [f for f in find_source_files(project_path, self.FILE_EXTENSIONS)
                           if 'model' in os.path.relpath(f, project_path).lower()]

        models: List[Dict] = []
        for fpath in model_files:
            content = read_file_safe(fpath)
            if content:
                models.extend(self.parse_source(content, fpath, schema))

        relationships = [rel for model in models for rel in self._relationships(model)]
        return self.make_model_result(models, relationships, checksum)

    @staticmethod
    def _load_schema(cache: SchemaCache) -> Optional[Schema]:
        try:
            return cache.schema()
        except SchemaLoadError as e:
            logger.warning("Schema unavailable (%s), association columns not resolved", e)
            return None

    def parse_source(self, content: str, file_path: str,
                     schema: Optional[Schema]) -> List[Dict]:
        """Extract one entry per ActiveRecord class defined in a source file."""
        tree = parse_ruby(content)
        if tree.root_node.has_error:
            logger.warning("Syntax errors in %s, results may be incomplete", file_path)

        models: List[Dict] = []
        for class_node in class_nodes(tree.root_node):
            if not inherits_from_orm_base(class_node):
                continue
            models.append(self._describe_model(class_node, file_path, schema))
        return models

    def _describe_model(self, class_node: Node, file_path: str,
                        schema: Optional[Schema]) -> Dict:
        name = table_name(class_node)
        table = schema.table_by(name) if schema is not None else None

        associations = []
        for declaration in association_declarations(class_node):
            resolved = resolve_relation_into_column(declaration.name, class_node, table)
            associations.append({
                'name': declaration.name,
                'macro': declaration.macro,
                'foreign_key': declaration.foreign_key,
                'polymorphic': declaration.polymorphic,
                'class_name': declaration.class_name,
                'columns': resolved_columns(resolved),
            })

        return {
            'name': nested_name(class_node),
            'table_name': name,
            'table_found': table is not None,
            'abstract': find_first_descendant(class_node, _is_abstract_class_assignment) is not None,
            'associations': associations,
            'source_file': file_path,
            'line_number': class_node.start_point[0] + 1,
        }

    @staticmethod
    def _relationships(model: Dict) -> List[Dict]:
        """belongs_to associations whose columns resolved, as many-to-one edges."""
        if model['abstract']:
            return []

        relationships = []
        for assoc in model['associations']:
            if not assoc['columns']:
                continue
            if assoc['polymorphic']:
                to_table, rel_type = '', 'polymorphic'
            else:
                target_class = assoc['class_name'] or inflection.camelize(assoc['name'])
                to_table, rel_type = inflection.tableize(target_class.replace('::', '_')), 'many-to-one'
            relationships.append({
                'from_table': model['table_name'],
                'to_table': to_table,
                'from_column': assoc['columns'][0],
                'to_column': 'id',
                'type': rel_type,
            })
        return relationships
