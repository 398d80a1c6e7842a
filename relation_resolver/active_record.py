"""
ActiveRecord model facts derived from a class definition's syntax tree.

Answers two questions about a Ruby class node:
- does it (or a class enclosing it) inherit from the ActiveRecord base?
- which physical table backs it?
"""

from typing import Iterator, List, Optional, Tuple

import inflection
from tree_sitter import Node

from .ast_query import (
    each_ancestor, find_all_descendants, is_send, literal_value,
    method_name, first_argument, receiver,
)
from .ruby_ast import NAMESPACE_TYPES, constant_segments, superclass_expression

APPLICATION_RECORD = 'ApplicationRecord'
ACTIVE_RECORD_BASE = ('ActiveRecord', 'Base')


# ---------------------------------------------------------------------------
# Class identity
# ---------------------------------------------------------------------------

def is_orm_base_class(node: Optional[Node]) -> bool:
    """True for a bare ``ApplicationRecord`` or a qualified ``ActiveRecord::Base``.

    A top-level ``::ApplicationRecord`` or deeper paths such as
    ``Foo::ActiveRecord::Base`` do not count.
    """
    if node is None:
        return False
    if node.type == 'constant':
        return node.text.decode('utf-8') == APPLICATION_RECORD
    if node.type == 'scope_resolution':
        scope = node.child_by_field_name('scope')
        if scope is None or scope.type != 'constant':
            return False
        return tuple(constant_segments(node)) == ACTIVE_RECORD_BASE
    return False


def inherits_from_orm_base(node: Node) -> bool:
    """True if node or any class enclosing it declares an ActiveRecord superclass.

    Every enclosing class is checked, not only the nearest one, since the
    base class may be declared several levels outward from a nested class.
    A class node's own superclass is checked too, so a bare
    ``class Post < ApplicationRecord`` counts; a strict ancestor walk would
    skip it.
    """
    classes = list(each_ancestor(node, 'class'))
    if node.type == 'class':
        classes.insert(0, node)
    return any(is_orm_base_class(superclass_expression(c)) for c in classes)


# ---------------------------------------------------------------------------
# Table name
# ---------------------------------------------------------------------------

def _is_table_name_assignment(node: Node) -> bool:
    if not is_send(node) or method_name(node) != 'table_name=':
        return False
    target = receiver(node)
    if target is None or target.type != 'self':
        return False
    return isinstance(literal_value(first_argument(node)), str)


def _is_table_name_prefix_assignment(node: Node) -> bool:
    return is_send(node) and method_name(node) == 'table_name_prefix='


def _is_table_name_suffix_assignment(node: Node) -> bool:
    return is_send(node) and method_name(node) == 'table_name_suffix='


def find_set_table_name(class_node: Node) -> Iterator[Node]:
    """``self.table_name = 'name'`` assignments in the class, in source order."""
    return find_all_descendants(class_node, _is_table_name_assignment)


def _first_literal(class_node: Node, predicate) -> str:
    for node in find_all_descendants(class_node, predicate):
        value = literal_value(first_argument(node))
        if isinstance(value, str):
            return value
    return ''


def mount_table_name(class_node: Node) -> Tuple[str, str]:
    """Resolve the table name prefix and suffix declared inside the class.

    Every descendant is scanned, so setters inside nested classes count too.
    The first setter of each kind wins; a missing one yields ''. The joining
    underscore is added when the declared value does not already carry it.
    """
    prefix = _first_literal(class_node, _is_table_name_prefix_assignment)
    suffix = _first_literal(class_node, _is_table_name_suffix_assignment)

    if prefix and not prefix.endswith('_'):
        prefix = f'{prefix}_'
    if suffix and not suffix.startswith('_'):
        suffix = f'_{suffix}'
    return prefix, suffix


def namespace_path(class_node: Node) -> List[str]:
    """Constant names leading to the class, outermost namespace first.

    The class's own name segments (``Blog::Post`` contributes Post, Blog)
    are followed by the identifier of every enclosing class/module,
    innermost first, and the combined list is reversed. An enclosing
    ``module Admin::Blog`` contributes only its identifier, Blog.
    """
    names = list(reversed(constant_segments(class_node.child_by_field_name('name'))))
    for namespace in each_ancestor(class_node, *NAMESPACE_TYPES):
        names.extend(constant_segments(namespace.child_by_field_name('name'))[-1:])
    names.reverse()
    return names


def table_name(class_node: Node) -> str:
    """Physical table name backing a class definition.

    An explicit ``self.table_name = ...`` is returned verbatim, the first one
    in source order winning. Otherwise the namespace path is joined with
    underscores and tableized (``Blog::Post`` -> ``blog_posts``), then
    wrapped in any declared prefix and suffix.
    """
    explicit = next(find_set_table_name(class_node), None)
    if explicit is not None:
        return literal_value(first_argument(explicit))

    base_table_name = inflection.tableize('_'.join(namespace_path(class_node)))
    table_prefix, table_suffix = mount_table_name(class_node)
    return table_prefix + base_table_name + table_suffix
