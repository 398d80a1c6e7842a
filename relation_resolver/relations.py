"""
Resolve relation names used in model code into schema column names.

A relation may name a column directly (``where(author_id: 1)``) or an
association (``where(author: user)``). Associations are looked up among the
class's ``belongs_to`` declarations and mapped onto their foreign key, or
onto the foreign key and type column pair when polymorphic.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple, Union

from tree_sitter import Node

from .ast_query import (
    arguments, find_all_descendants, first_argument, is_symbol,
    last_argument, literal_value, method_name, receiver,
)
from .schema.models import Table

logger = logging.getLogger(__name__)

ResolvedColumns = Union[str, Tuple[str, str]]


@dataclass(frozen=True)
class AssociationDeclaration:
    """A ``belongs_to`` declaration with its options normalized to plain values."""

    name: str
    foreign_key: Optional[str] = None
    polymorphic: bool = False
    class_name: Optional[str] = None
    macro: str = 'belongs_to'
    node: Optional[Node] = field(default=None, compare=False, repr=False)

    @property
    def default_foreign_key(self) -> str:
        return f'{self.name}_id'

    @property
    def type_column(self) -> str:
        return f'{self.name}_type'


# ---------------------------------------------------------------------------
# Association extraction
# ---------------------------------------------------------------------------

def _is_belongs_to(node: Node) -> bool:
    if node.type != 'call' or method_name(node) != 'belongs_to':
        return False
    if receiver(node) is not None:
        return False
    return isinstance(literal_value(first_argument(node)), str)


def find_belongs_to(class_node: Node) -> Iterator[Node]:
    """``belongs_to :name, ...`` calls in the class, in source order."""
    return find_all_descendants(class_node, _is_belongs_to)


def _is_symbol_key(pair: Node, key: Optional[Node]) -> bool:
    """``key:``, ``:key =>`` and ``"key":`` are symbol keys; ``"key" =>`` is not."""
    if is_symbol(key):
        return True
    return (key is not None and key.type == 'string'
            and not any(child.type == '=>' for child in pair.children))


def _options(call: Node) -> Dict[str, Node]:
    """Symbol-keyed options of the call's trailing hash.

    Accepts bare ``key: value`` pairs as well as an explicit ``{...}`` hash.
    Quoted symbol keys (``"key":``) count; string keys (``"key" =>``) and
    splats are ignored. The first occurrence of a key wins.
    """
    args = arguments(call)
    if len(args) < 2:
        return {}

    last = last_argument(call)
    if last.type == 'hash':
        pairs = [p for p in last.named_children if p.type == 'pair']
    else:
        pairs = [a for a in args[1:] if a.type == 'pair']

    options: Dict[str, Node] = {}
    for pair in pairs:
        key = pair.child_by_field_name('key')
        value = pair.child_by_field_name('value')
        if not _is_symbol_key(pair, key) or value is None:
            continue
        key_name = literal_value(key)
        if isinstance(key_name, str):
            options.setdefault(key_name, value)
    return options


def foreign_key_of(belongs_to: Node) -> Optional[str]:
    """The ``foreign_key:`` option as a string, or None when absent or not a literal."""
    value = literal_value(_options(belongs_to).get('foreign_key'))
    return value if isinstance(value, str) else None


def polymorphic(belongs_to: Node) -> bool:
    """True only for a literal ``polymorphic: true`` option."""
    return literal_value(_options(belongs_to).get('polymorphic')) is True


def class_name_of(belongs_to: Node) -> Optional[str]:
    value = literal_value(_options(belongs_to).get('class_name'))
    return value if isinstance(value, str) else None


def association_declarations(class_node: Node) -> Iterator[AssociationDeclaration]:
    for call in find_belongs_to(class_node):
        yield AssociationDeclaration(
            name=literal_value(first_argument(call)),
            foreign_key=foreign_key_of(call),
            polymorphic=polymorphic(call),
            class_name=class_name_of(call),
            node=call,
        )


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def resolve_relation_into_column(name: str, class_node: Node,
                                 table: Optional[Table]) -> Optional[ResolvedColumns]:
    """Resolve a relation name into the column name(s) backing it.

    Returns name itself when the table has such a column. Otherwise the first
    matching ``belongs_to`` (source order) whose foreign key exists in the
    table decides: its foreign key, or ``(foreign_key, '<name>_type')`` when
    the association is polymorphic.

    Returns None when there is no table or nothing resolves; callers should
    then skip whatever check needed the columns.
    """
    if table is None:
        return None
    if table.with_column(name):
        return name

    for declaration in association_declarations(class_node):
        if declaration.name != name:
            continue

        fk = declaration.foreign_key
        if fk is None:
            fk = declaration.default_foreign_key
        if not table.with_column(fk):
            continue

        if declaration.polymorphic:
            return fk, declaration.type_column
        return fk

    logger.debug("Relation %s not resolvable against table %s", name, table.name)
    return None


def resolved_columns(resolved: Optional[ResolvedColumns]) -> List[str]:
    """Flatten a resolution result into a list of column names."""
    if resolved is None:
        return []
    if isinstance(resolved, tuple):
        return list(resolved)
    return [resolved]
