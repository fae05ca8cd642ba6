from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

Document = Dict[str, Any]


@runtime_checkable
class ResultCursor(Protocol):
    """Asynchronous pull-based sequence of result documents."""

    async def next(self) -> Optional[Document]:
        """Return the next document, or None once the sequence is exhausted."""
        ...

    async def close(self) -> None:
        """Release the cursor. Calling it more than once is harmless."""
        ...


class PipelineExecutor(Protocol):
    """Accumulates pipeline stages and produces cursors over the result.

    Stage methods (match, sort, limit, ...) return an executor handle for the
    extended pipeline. It may be the same object or a new one.
    """

    def cursor(self, options: Optional[Mapping[str, Any]] = None) -> ResultCursor:
        ...

    def explain(self, verbosity: Optional[str] = None) -> Any:
        ...

    def pipeline(self) -> List[Document]:
        ...

    def model(self, source: Any = ...) -> Any:
        ...


class DataSource(Protocol):
    """Anything that can hand out fresh executors bound to itself."""

    def aggregate(self, pipeline: Optional[List[Document]] = None) -> PipelineExecutor:
        ...
