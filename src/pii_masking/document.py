"""Document abstraction — dotted-path field access for the processor.

The processor only needs four things from a host document: does a field
exist, read it, write it, and look up metadata (``_id``, ``_index``).
Any object with those methods works; IngestDocument is the in-memory
implementation used by the CLI, the sidecar and the tests.

Paths are dotted: ``user.email``, ``details.notes.0`` (numeric segments
index into lists).
"""

from __future__ import annotations
import copy
from typing import Any, Protocol, runtime_checkable

METADATA_KEYS = ("_id", "_index", "_routing")


@runtime_checkable
class Document(Protocol):
    def has_field(self, path: str) -> bool: ...
    def get_field(self, path: str) -> Any: ...
    def set_field(self, path: str, value: Any) -> None: ...
    def metadata(self, key: str, default: Any = None) -> Any: ...


_MISSING = object()


class IngestDocument:
    """A document backed by nested dicts/lists plus a metadata dict."""

    __slots__ = ("_source", "_metadata")

    def __init__(self, source: dict[str, Any], metadata: dict[str, Any] | None = None) -> None:
        self._source = source
        self._metadata = dict(metadata or {})

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "IngestDocument":
        """Split ``_id``/``_index``/``_routing`` out of a raw document.

        The raw dict is deep-copied; the caller's object is never mutated.
        """
        source = copy.deepcopy(raw)
        metadata = {k: source.pop(k) for k in METADATA_KEYS if k in source}
        return cls(source, metadata)

    def to_dict(self) -> dict[str, Any]:
        return {**self._metadata, **self._source}

    @property
    def source(self) -> dict[str, Any]:
        return self._source

    # ------------------------------------------------------------------
    # Field access
    # ------------------------------------------------------------------

    def has_field(self, path: str) -> bool:
        return self._resolve(path) is not _MISSING

    def get_field(self, path: str) -> Any:
        value = self._resolve(path)
        if value is _MISSING:
            raise KeyError(path)
        return value

    def set_field(self, path: str, value: Any) -> None:
        """Write ``value`` at ``path``, creating intermediate dicts."""
        *parents, leaf = path.split(".")
        node: Any = self._source
        for segment in parents:
            if isinstance(node, list):
                node = node[int(segment)]
                continue
            if not isinstance(node.get(segment), (dict, list)):
                node[segment] = {}
            node = node[segment]
        if isinstance(node, list):
            node[int(leaf)] = value
        else:
            node[leaf] = value

    def metadata(self, key: str, default: Any = None) -> Any:
        return self._metadata.get(key, default)

    def _resolve(self, path: str) -> Any:
        node: Any = self._source
        for segment in path.split("."):
            if isinstance(node, dict):
                if segment not in node:
                    return _MISSING
                node = node[segment]
            elif isinstance(node, list):
                if not segment.isdigit() or int(segment) >= len(node):
                    return _MISSING
                node = node[int(segment)]
            else:
                return _MISSING
        return node

    def __repr__(self) -> str:
        return f"IngestDocument({self.to_dict()!r})"
