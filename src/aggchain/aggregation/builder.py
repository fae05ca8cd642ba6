"""Chainable aggregation builder.

An AggregationBuilder wraps a pipeline executor and answers to a fixed
vocabulary of verbs (see :mod:`aggchain.aggregation.operations`). Stage verbs
are forwarded to the executor and recorded so the pipeline can be rebuilt from
scratch when counting. Execution verbs drain a cursor instead of relying on the
executor's own ``exec``, and the builder itself is awaitable:

    movies = await Movie.aggregation().match({"rate": {"$gte": 4}}).sort("-rate").limit(10)
    total = await Movie.aggregation().match({"rate": {"$gte": 4}}).count_documents()
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Callable, Coroutine, List, Optional

from aggchain.aggregation import deferred
from aggchain.aggregation.chain import ChainRecorder
from aggchain.aggregation.errors import UnboundModelError, UnknownOperationError
from aggchain.aggregation.operations import VERBS, OperationKind, classify
from aggchain.aggregation.protocols import DataSource, Document, PipelineExecutor
from aggchain.aggregation.strategies import count_documents, exec_with_cursor

logger = logging.getLogger(__name__)


class AggregationBuilder:
    """Fluent, awaitable front end over a pipeline executor.

    The builder holds the latest executor handle returned by a stage call and a
    ChainRecorder with every stage call made so far. Only stage verbs are
    recorded; pass-through, binding and execution verbs leave the recorder
    alone.

    A builder is single-writer: chained calls must be sequenced by the caller.
    """

    def __init__(self, executor: Optional[PipelineExecutor]):
        self._executor = executor
        self._recorder = ChainRecorder()

    @classmethod
    def from_source(cls, source: DataSource) -> "AggregationBuilder":
        return cls(source.aggregate())

    @property
    def executor(self) -> Optional[PipelineExecutor]:
        return self._executor

    @property
    def recorder(self) -> ChainRecorder:
        return self._recorder

    def __getattr__(self, verb: str) -> Callable:
        if verb.startswith("__"):
            raise AttributeError(verb)
        try:
            kind = classify(verb)
        except KeyError:
            raise UnknownOperationError(verb) from None
        handler = getattr(self, _HANDLERS[kind])

        def operation(*args, **kwargs):
            return handler(verb, *args, **kwargs)

        operation.__name__ = verb
        return operation

    def __dir__(self):
        return sorted(set(super().__dir__()) | set(VERBS))

    def custom_stage(self, verb: str, *args, **kwargs) -> "AggregationBuilder":
        """Apply and record an executor verb that is not in the builder's vocabulary."""
        return self._apply_stage(verb, *args, **kwargs)

    def to_deferred(self) -> asyncio.Task:
        """Schedule materialization on the running loop and return the task."""
        return asyncio.get_running_loop().create_task(self._exec("exec"))

    def __await__(self):
        return self._exec("exec").__await__()

    def _require_executor(self) -> PipelineExecutor:
        if self._executor is None:
            raise UnboundModelError("The aggregation has no executor; bind it to a model first")
        return self._executor

    def _apply_stage(self, verb: str, *args, **kwargs) -> "AggregationBuilder":
        executor = self._require_executor()
        self._executor = getattr(executor, verb)(*args, **kwargs)
        self._recorder.append(verb, args, kwargs)
        logger.debug(f"Applied stage {verb}; {len(self._recorder)} stages recorded")
        return self

    def _pass_through(self, verb: str, *args, **kwargs) -> Any:
        return getattr(self._require_executor(), verb)(*args, **kwargs)

    def _bind(self, verb: str, *args) -> Any:
        executor = self._require_executor()
        if not args:
            return executor.model()
        if len(args) > 1:
            raise TypeError(f"model() takes at most 1 argument ({len(args)} given)")
        executor.model(args[0])
        logger.debug(f"Rebound aggregation to {args[0]!r}")
        return self

    def _exec(self, verb: str, cursor_options: Any = None) -> Coroutine[Any, Any, List[Document]]:
        executor = self._require_executor()
        if executor.model() is None:
            raise UnboundModelError("Cannot execute an aggregation that is not bound to a model")
        if not isinstance(cursor_options, Mapping):
            cursor_options = None
        return exec_with_cursor(executor, cursor_options)

    def _count(self, verb: str) -> Coroutine[Any, Any, int]:
        source = self._require_executor().model()
        if source is None:
            raise UnboundModelError("Cannot count documents: the aggregation is not bound to a model")
        return count_documents(source, self._recorder.copy())

    def _combine(self, verb: str, *args: Optional[Callable], **kwargs: Optional[Callable]) -> asyncio.Task:
        asyncio.get_running_loop()
        return getattr(deferred, verb)(self._exec("exec"), *args, **kwargs)

    def __repr__(self) -> str:
        return f"AggregationBuilder({self._executor!r}, {self._recorder!r})"


_HANDLERS = {
    OperationKind.PIPELINE_STAGE: "_apply_stage",
    OperationKind.PASS_THROUGH: "_pass_through",
    OperationKind.BINDING: "_bind",
    OperationKind.MATERIALIZING: "_exec",
    OperationKind.COUNTING: "_count",
    OperationKind.COMBINATOR: "_combine",
}
