"""Tree-sitter Ruby parsing.

Wraps the ``tree-sitter-ruby`` grammar so the rest of the package only deals
with ``tree_sitter.Node`` objects. Nodes are read-only; a tree lives as long
as any node taken from it is referenced.
"""

import logging
from typing import Iterator, List, Optional, Union

import tree_sitter
import tree_sitter_ruby

from .ast_query import find_all_descendants, find_first_descendant, node_text

logger = logging.getLogger(__name__)

RUBY_LANGUAGE = tree_sitter.Language(tree_sitter_ruby.language())

# Node types that open a constant namespace
NAMESPACE_TYPES = ('class', 'module')


def parse_ruby(source: Union[str, bytes]) -> tree_sitter.Tree:
    """Parse Ruby source into a syntax tree.

    Tree-sitter always produces a tree; syntax errors show up as ERROR
    nodes and ``tree.root_node.has_error``.
    """
    if isinstance(source, str):
        source = source.encode('utf-8')
    parser = tree_sitter.Parser(RUBY_LANGUAGE)
    tree = parser.parse(source)
    if tree.root_node.has_error:
        logger.debug("Ruby source parsed with syntax errors")
    return tree


def constant_segments(node: Optional[tree_sitter.Node]) -> List[str]:
    """Return the constant names of a ``Foo::Bar::Baz`` path, outermost first.

    Non-constant scopes (``self::Foo``, ``foo.bar::Baz``) contribute nothing.
    """
    if node is None:
        return []
    if node.type == 'constant':
        return [node_text(node)]
    if node.type == 'scope_resolution':
        scope = node.child_by_field_name('scope')
        name = node.child_by_field_name('name')
        segments = constant_segments(scope) if scope is not None else []
        if name is not None and name.type == 'constant':
            segments.append(node_text(name))
        return segments
    return []


def definition_name(node: tree_sitter.Node) -> str:
    """Qualified name written at a class or module definition, e.g. ``Blog::Post``."""
    return '::'.join(constant_segments(node.child_by_field_name('name')))


def superclass_expression(class_node: tree_sitter.Node) -> Optional[tree_sitter.Node]:
    """The parent-class expression of a class definition, if declared."""
    superclass = class_node.child_by_field_name('superclass')
    if superclass is None or not superclass.named_children:
        return None
    return superclass.named_children[0]


def class_nodes(root: tree_sitter.Node) -> Iterator[tree_sitter.Node]:
    """Every class definition below root, in source order."""
    return find_all_descendants(root, lambda n: n.type == 'class')


def find_class(root: tree_sitter.Node, name: str) -> Optional[tree_sitter.Node]:
    """First class definition whose fully nested name equals name.

    The nested name includes enclosing modules and classes, so
    ``module Blog; class Post`` and ``class Blog::Post`` both match
    ``Blog::Post``.
    """
    return find_first_descendant(
        root, lambda n: n.type == 'class' and nested_name(n) == name)


def nested_name(node: tree_sitter.Node) -> str:
    """Name of a class or module including every enclosing namespace."""
    segments = constant_segments(node.child_by_field_name('name'))
    parent = node.parent
    while parent is not None:
        if parent.type in NAMESPACE_TYPES:
            segments = constant_segments(parent.child_by_field_name('name')) + segments
        parent = parent.parent
    return '::'.join(segments)
