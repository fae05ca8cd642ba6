"""Execution strategies behind ``exec`` and ``count_documents``.

Both strategies own the cursor they open: it is closed exactly once, whether
draining succeeds or fails.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional

from aggchain.aggregation.chain import ChainRecorder
from aggchain.aggregation.errors import NestedCountError, UnboundModelError
from aggchain.aggregation.operations import COUNT_STAGE
from aggchain.aggregation.protocols import DataSource, Document, PipelineExecutor, ResultCursor

logger = logging.getLogger(__name__)

COUNT_FIELD = "count"


async def drain(cursor: ResultCursor) -> List[Document]:
    """Pull documents from ``cursor`` until it reports the end of the sequence.

    The next document is only requested after the previous one has been
    appended, so the returned list keeps the cursor's emission order.
    """
    documents = []
    while True:
        doc = await cursor.next()
        if doc is None:
            break
        documents.append(doc)
    return documents


async def exec_with_cursor(executor: PipelineExecutor, cursor_options: Optional[Mapping[str, Any]] = None) -> List[Document]:
    """Open one cursor on ``executor`` and materialize every document it yields.

    Args:
        executor: The pipeline executor to read from.
        cursor_options: Options passed to the executor's cursor factory.

    Returns:
        The documents in the order the cursor produced them.

    Raises:
        Whatever the cursor raised while iterating. The cursor has already been
        closed when the exception reaches the caller.
    """
    cursor = executor.cursor(dict(cursor_options or {}))
    try:
        documents = await drain(cursor)
    except BaseException:
        try:
            await cursor.close()
        except Exception as close_error:
            logger.error(f"Failed to close cursor after iteration error: {close_error}")
        raise
    await cursor.close()
    logger.debug(f"Materialized {len(documents)} documents")
    return documents


def extract_count(documents: Iterable[Document], field: str = COUNT_FIELD) -> int:
    """Return the last truthy ``field`` value among ``documents``, or 0."""
    count = 0
    for doc in documents:
        count = doc.get(field) or count
    return count


async def count_documents(source: Optional[DataSource], recorder: ChainRecorder, field: str = COUNT_FIELD) -> int:
    """Count the documents an equivalent pipeline would produce.

    A fresh executor is taken from ``source`` and every recorded entry is
    replayed onto it in order before a count stage is appended. The executor
    the entries were originally applied to is never touched.

    Raises:
        UnboundModelError: If there is no data source to take an executor from.
        NestedCountError: If the chain already contains a count stage.
    """
    if source is None:
        raise UnboundModelError("Cannot count documents: the aggregation is not bound to a model")
    if recorder.contains(COUNT_STAGE):
        raise NestedCountError("Counting an aggregation that already has a count stage is not supported")

    executor = recorder.replay(source.aggregate()).count(field)

    documents = await exec_with_cursor(executor, {})
    return extract_count(documents, field)
