"""Ordered record of the pipeline-stage calls made on a builder."""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainEntry:
    """One recorded stage call: the verb and the arguments it was called with."""
    operation: str
    arguments: Tuple[Any, ...] = ()
    keywords: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "arguments", tuple(self.arguments))
        object.__setattr__(self, "keywords", MappingProxyType(dict(self.keywords)))

    def apply(self, executor: Any) -> Any:
        """Call this entry's verb on ``executor`` and return the resulting handle."""
        return getattr(executor, self.operation)(*self.arguments, **self.keywords)


class ChainRecorder:
    """Append-only log of ChainEntry objects owned by a single builder."""

    def __init__(self):
        self._entries = []

    def append(self, operation: str, arguments: Tuple[Any, ...] = (), keywords: Mapping[str, Any] = None) -> ChainEntry:
        entry = ChainEntry(operation, arguments, keywords or {})
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> Tuple[ChainEntry, ...]:
        return tuple(self._entries)

    def copy(self) -> "ChainRecorder":
        """Return an independent recorder holding the same entries."""
        clone = ChainRecorder()
        clone._entries = list(self._entries)
        return clone

    def contains(self, operation: str) -> bool:
        return any(entry.operation == operation for entry in self._entries)

    def replay(self, executor: Any) -> Any:
        """Apply every recorded entry to ``executor`` in order.

        Each call is made on the handle returned by the previous one. Any
        exception raised along the way propagates; the caller gets no partial
        result.
        """
        for entry in self._entries:
            logger.debug(f"Replaying {entry.operation}{entry.arguments}")
            executor = entry.apply(executor)
        return executor

    def __iter__(self) -> Iterator[ChainEntry]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ChainRecorder({[entry.operation for entry in self._entries]!r})"
