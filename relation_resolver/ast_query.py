"""
Predicate-based queries over tree-sitter syntax trees.

Searches walk named nodes only, depth-first and pre-order, so results come
back in source order. Callers rely on that order for "first wins" rules.
"""

from typing import Callable, Iterator, List, Optional, Union

from tree_sitter import Node

Predicate = Callable[[Node], bool]
LiteralValue = Union[str, bool]

WHERE_METHODS = frozenset({'where', 'rewhere'})

_STRING_TYPES = ('string', 'delimited_symbol')
_SYMBOL_TYPES = ('simple_symbol', 'hash_key_symbol')


# ---------------------------------------------------------------------------
# Tree search
# ---------------------------------------------------------------------------

def find_all_descendants(root: Node, predicate: Predicate) -> Iterator[Node]:
    """Yield every node below root satisfying predicate.

    root itself is never yielded. The walk is a generator: each call starts
    a fresh traversal and nothing is cached between calls.
    """
    stack = list(reversed(root.named_children))
    while stack:
        node = stack.pop()
        if predicate(node):
            yield node
        stack.extend(reversed(node.named_children))


def find_first_descendant(root: Node, predicate: Predicate) -> Optional[Node]:
    """Return the first node below root (pre-order) satisfying predicate."""
    return next(find_all_descendants(root, predicate), None)


def each_ancestor(node: Node, *types: str) -> Iterator[Node]:
    """Yield the ancestors of node, innermost first, optionally filtered by type."""
    parent = node.parent
    while parent is not None:
        if not types or parent.type in types:
            yield parent
        parent = parent.parent


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------

def node_text(node: Node) -> str:
    return node.text.decode('utf-8')


def literal_value(node: Optional[Node]) -> Optional[LiteralValue]:
    """Value of a string, symbol or boolean literal.

    ``'posts'``, ``"posts"``, ``:posts``, ``:"posts"`` and the key of
    ``posts: 1`` all yield ``'posts'``. Interpolated or escaped strings are
    not literals and yield None, as does every other node.
    """
    if node is None:
        return None
    if node.type in _STRING_TYPES:
        parts = node.named_children
        if any(part.type != 'string_content' for part in parts):
            return None
        return ''.join(node_text(part) for part in parts)
    if node.type == 'simple_symbol':
        return node_text(node)[1:]
    if node.type == 'hash_key_symbol':
        return node_text(node)
    if node.type == 'true':
        return True
    if node.type == 'false':
        return False
    return None


def is_string_or_symbol(node: Optional[Node]) -> bool:
    return isinstance(literal_value(node), str)


def is_symbol(node: Optional[Node]) -> bool:
    return node is not None and node.type in _SYMBOL_TYPES + ('delimited_symbol',)


def is_true(node: Optional[Node]) -> bool:
    return node is not None and node.type == 'true'


# ---------------------------------------------------------------------------
# Method calls
#
# ``foo.bar = x`` parses as an assignment whose left side is a call; it is
# treated here as a call to the writer method ``bar=`` with one argument.
# ---------------------------------------------------------------------------

def _writer_target(node: Node) -> Optional[Node]:
    if node.type != 'assignment':
        return None
    left = node.child_by_field_name('left')
    if left is None or left.type != 'call' or left.child_by_field_name('arguments') is not None:
        return None
    return left


def is_send(node: Node) -> bool:
    """True for method calls, attribute writers included."""
    return node.type == 'call' or _writer_target(node) is not None


def method_name(node: Node) -> Optional[str]:
    if node.type == 'call':
        method = node.child_by_field_name('method')
        return node_text(method) if method is not None else None
    target = _writer_target(node)
    if target is not None:
        name = method_name(target)
        return f'{name}=' if name else None
    return None


def receiver(node: Node) -> Optional[Node]:
    if node.type == 'call':
        return node.child_by_field_name('receiver')
    target = _writer_target(node)
    if target is not None:
        return target.child_by_field_name('receiver')
    return None


def arguments(node: Node) -> List[Node]:
    if node.type == 'call':
        args = node.child_by_field_name('arguments')
        if args is None:
            return []
        return [arg for arg in args.named_children if arg.type != 'comment']
    if _writer_target(node) is not None:
        right = node.child_by_field_name('right')
        return [right] if right is not None else []
    return []


def first_argument(node: Node) -> Optional[Node]:
    args = arguments(node)
    return args[0] if args else None


def last_argument(node: Node) -> Optional[Node]:
    args = arguments(node)
    return args[-1] if args else None


def in_where(node: Node) -> bool:
    """True when the closest enclosing method call is ``where`` or ``rewhere``."""
    send_node = next(each_ancestor(node, 'call'), None)
    return send_node is not None and method_name(send_node) in WHERE_METHODS
