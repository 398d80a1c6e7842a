from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple


@dataclass(frozen=True)
class Column:
    name: str
    type: str = ''
    nullable: bool = True


@dataclass(frozen=True)
class Table:
    """Read-only projection of one schema table."""

    name: str
    columns: Tuple[Column, ...] = ()

    @property
    def column_names(self) -> FrozenSet[str]:
        return frozenset(c.name for c in self.columns)

    def with_column(self, name: str) -> bool:
        return any(c.name == name for c in self.columns)

    def column(self, name: str) -> Optional[Column]:
        return next((c for c in self.columns if c.name == name), None)


@dataclass(frozen=True)
class Schema:
    tables: Tuple[Table, ...] = ()
    source: Optional[str] = None
    target_ruby_version: Optional[str] = field(default=None, compare=False)

    @property
    def table_names(self) -> Tuple[str, ...]:
        return tuple(t.name for t in self.tables)

    def table_by(self, name: str) -> Optional[Table]:
        return next((t for t in self.tables if t.name == name), None)
