"""
Schema value objects for tablesync.

All schemas are immutable snapshots. Column mappings keep insertion
order and are exposed read-only.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .types import ColumnType, column_type_from_dict


def _freeze_columns(columns: Mapping[str, ColumnType]) -> Mapping[str, ColumnType]:
    return MappingProxyType(dict(columns))


def _describe_columns(columns: Mapping[str, ColumnType]) -> List[str]:
    return [f"{name} {column_type}" for name, column_type in columns.items()]


@dataclass(frozen=True)
class TableIdentifier:
    """Identifier of a target table in the catalog."""

    database: str
    table: str

    @property
    def full_name(self) -> str:
        return f"{self.database}.{self.table}"

    def __str__(self) -> str:
        return self.full_name


@dataclass(frozen=True)
class SourceSchema:
    """Column set and primary key of one discovered source table."""

    origin: str
    columns: Mapping[str, ColumnType]
    primary_key: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "columns", _freeze_columns(self.columns))
        object.__setattr__(self, "primary_key", tuple(self.primary_key))

    @property
    def fields(self) -> List[str]:
        return _describe_columns(self.columns)


@dataclass(frozen=True)
class UnifiedSchema:
    """
    Result of folding source schemas together.

    ``origins`` records, per column, which source contributed the type
    currently chosen. ``seen`` keeps every distinct type met for a column
    together with the first source that declared it. An empty
    ``primary_key`` means undetermined.
    """

    columns: Mapping[str, ColumnType]
    primary_key: Tuple[str, ...] = ()
    origins: Mapping[str, str] = field(default_factory=dict)
    seen: Mapping[str, Tuple[Tuple[str, ColumnType], ...]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "columns", _freeze_columns(self.columns))
        object.__setattr__(self, "primary_key", tuple(self.primary_key))
        object.__setattr__(self, "origins", MappingProxyType(dict(self.origins)))
        object.__setattr__(
            self, "seen", MappingProxyType({k: tuple(v) for k, v in self.seen.items()})
        )

    @classmethod
    def from_source(cls, source: SourceSchema) -> "UnifiedSchema":
        return cls(
            columns=source.columns,
            primary_key=source.primary_key,
            origins={name: source.origin for name in source.columns},
            seen={
                name: ((source.origin, column_type),)
                for name, column_type in source.columns.items()
            },
        )

    @property
    def has_primary_key(self) -> bool:
        return bool(self.primary_key)

    @property
    def fields(self) -> List[str]:
        return _describe_columns(self.columns)


@dataclass(frozen=True)
class TargetSchemaDraft:
    """Schema to create when no target table exists yet."""

    columns: Mapping[str, ColumnType]
    primary_key: Tuple[str, ...]
    partition_keys: Tuple[str, ...] = ()
    options: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "columns", _freeze_columns(self.columns))
        object.__setattr__(self, "primary_key", tuple(self.primary_key))
        object.__setattr__(self, "partition_keys", tuple(self.partition_keys))
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))


@dataclass(frozen=True)
class TargetSchema:
    """Schema persisted for a destination table."""

    columns: Mapping[str, ColumnType]
    primary_key: Tuple[str, ...] = ()
    partition_keys: Tuple[str, ...] = ()
    options: Mapping[str, str] = field(default_factory=dict)
    version: int = 1

    def __post_init__(self):
        object.__setattr__(self, "columns", _freeze_columns(self.columns))
        object.__setattr__(self, "primary_key", tuple(self.primary_key))
        object.__setattr__(self, "partition_keys", tuple(self.partition_keys))
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

    @classmethod
    def from_draft(cls, draft: TargetSchemaDraft, version: int = 1) -> "TargetSchema":
        return cls(
            columns=draft.columns,
            primary_key=draft.primary_key,
            partition_keys=draft.partition_keys,
            options=draft.options,
            version=version,
        )

    @property
    def fields(self) -> List[str]:
        return _describe_columns(self.columns)

    def has_column(self, name: str) -> bool:
        return name in self.columns

    def get_column(self, name: str) -> Optional[ColumnType]:
        return self.columns.get(name)

    def with_column(self, name: str, column_type: ColumnType) -> "TargetSchema":
        """Return the next version with ``name`` added or retyped in place."""
        columns = dict(self.columns)
        columns[name] = column_type
        return TargetSchema(
            columns=columns,
            primary_key=self.primary_key,
            partition_keys=self.partition_keys,
            options=self.options,
            version=self.version + 1,
        )

    def columns_to_json(self) -> List[Dict[str, Any]]:
        return [
            {"name": name, "type": column_type.to_dict()}
            for name, column_type in self.columns.items()
        ]

    @staticmethod
    def columns_from_json(data: Iterable[Dict[str, Any]]) -> Dict[str, ColumnType]:
        return {item["name"]: column_type_from_dict(item["type"]) for item in data}
