"""Document model and metadata projection onto flat collection columns."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from vector_doc_store.exceptions import ConfigurationError

type MetadataValue = (
    str | int | float | bool | None | list[MetadataValue] | dict[str, MetadataValue]
)

# Qdrant point ids: unsigned integers or UUID strings.
type DocumentId = int | str

_PATH_SEPARATOR = "."
_COLUMN_SEPARATOR = "_"


@dataclass
class Document:
    """A piece of text with nested metadata and an optional store identifier."""

    page_content: str
    metadata: dict[str, MetadataValue] = field(default_factory=dict)
    id: DocumentId | None = None


@dataclass(frozen=True)
class MetadataSchema:
    """Ordered set of dotted metadata paths persisted as flat columns.

    Each path such as ``deep.deepdeep.string`` is stored in the column
    ``deep_deepdeep_string``. Metadata outside the declared paths is dropped
    when writing, so it can never be returned by a search.
    """

    paths: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.paths, str):
            raise ConfigurationError(
                f"Metadata keys must be a sequence of paths, not the string '{self.paths}'"
            )
        paths = tuple(self.paths)
        object.__setattr__(self, "paths", paths)

        columns: dict[str, str] = {}
        for path in paths:
            if not isinstance(path, str) or not path:
                raise ConfigurationError("Metadata keys must be non-empty strings.")
            if any(not segment for segment in path.split(_PATH_SEPARATOR)):
                raise ConfigurationError(f"Metadata key has an empty segment: '{path}'")
            column = self.column(path)
            if column in columns:
                if columns[column] == path:
                    raise ConfigurationError(f"Duplicate metadata key: '{path}'")
                raise ConfigurationError(
                    f"Metadata keys '{columns[column]}' and '{path}' "
                    f"both map to column '{column}'"
                )
            columns[column] = path

        for path in paths:
            for other in paths:
                if other.startswith(path + _PATH_SEPARATOR):
                    raise ConfigurationError(
                        f"Metadata key '{path}' is a prefix of '{other}'"
                    )

    @classmethod
    def from_keys(cls, keys: Iterable[str] | None) -> MetadataSchema:
        if isinstance(keys, str):
            raise ConfigurationError(
                f"Metadata keys must be a sequence of paths, not the string '{keys}'"
            )
        return cls(tuple(keys or ()))

    @staticmethod
    def column(path: str) -> str:
        """Return the column name used to store a dotted metadata path."""
        return path.replace(_PATH_SEPARATOR, _COLUMN_SEPARATOR)

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(self.column(path) for path in self.paths)

    def flatten(self, metadata: Mapping[str, Any] | None) -> dict[str, Any]:
        """Project nested metadata onto the declared columns.

        Paths missing from ``metadata`` are skipped.
        """
        flat: dict[str, Any] = {}
        if not metadata:
            return flat
        for path in self.paths:
            found, value = _lookup(metadata, path.split(_PATH_SEPARATOR))
            if found:
                flat[self.column(path)] = value
        return flat

    def unflatten(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Rebuild nested metadata from the declared columns present in a row."""
        metadata: dict[str, Any] = {}
        for path in self.paths:
            column = self.column(path)
            if column not in row:
                continue
            *parents, leaf = path.split(_PATH_SEPARATOR)
            node = metadata
            for segment in parents:
                node = node.setdefault(segment, {})
            node[leaf] = row[column]
        return metadata


def _lookup(metadata: Mapping[str, Any], segments: list[str]) -> tuple[bool, Any]:
    node: Any = metadata
    for segment in segments:
        if not isinstance(node, Mapping) or segment not in node:
            return False, None
        node = node[segment]
    return True, node
