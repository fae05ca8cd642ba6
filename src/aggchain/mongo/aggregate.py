"""Pipeline executor and result cursor backed by pymongo's asyncio API.

``Aggregate`` collects stages the way a hand-written pipeline would:

    Aggregate(model).match({"status": "active"}).sort("-created").limit(10)

builds ``[{"$match": ...}, {"$sort": {"created": -1}}, {"$limit": 10}]``.
Verbs that configure the aggregate command rather than the pipeline
(``allow_disk_use``, ``collation``, ``hint``, ...) are stored as options and
sent along when a cursor is opened.
"""

import copy
import logging
from typing import Any, Dict, List, Optional, Union

from pymongo import ReadPreference
from pymongo.read_concern import ReadConcern

logger = logging.getLogger(__name__)

_UNSET = object()

READ_PREFERENCES = {
    "primary": ReadPreference.PRIMARY,
    "p": ReadPreference.PRIMARY,
    "primaryPreferred": ReadPreference.PRIMARY_PREFERRED,
    "pp": ReadPreference.PRIMARY_PREFERRED,
    "secondary": ReadPreference.SECONDARY,
    "s": ReadPreference.SECONDARY,
    "secondaryPreferred": ReadPreference.SECONDARY_PREFERRED,
    "sp": ReadPreference.SECONDARY_PREFERRED,
    "nearest": ReadPreference.NEAREST,
    "n": ReadPreference.NEAREST,
}

SpecOrStr = Union[Dict[str, Any], str]


def _field_path(value: Any) -> Any:
    if isinstance(value, str) and not value.startswith("$"):
        return "$" + value
    return value


def _parse_sort(spec: SpecOrStr) -> Dict[str, Any]:
    """Accept ``{"a": 1}`` or ``"a -b"`` style sort specifications."""
    if isinstance(spec, dict):
        return dict(spec)
    result = {}
    for token in spec.split():
        if token.startswith("-"):
            result[token[1:]] = -1
        else:
            result[token.lstrip("+")] = 1
    return result


def _parse_projection(spec: SpecOrStr) -> Dict[str, Any]:
    """Accept ``{"a": 1}`` or ``"a -_id"`` style projections."""
    if isinstance(spec, dict):
        return dict(spec)
    result = {}
    for token in spec.split():
        if token.startswith("-"):
            result[token[1:]] = 0
        else:
            result[token.lstrip("+")] = 1
    return result


class AggregateCursor:
    """Lazily opened wrapper around an ``AsyncCommandCursor``.

    ``next()`` returns ``None`` once the results are exhausted. ``close()`` may
    be called any number of times, before or after the cursor was opened.
    """

    def __init__(self, aggregate: "Aggregate", options: Optional[Dict[str, Any]] = None):
        self._aggregate = aggregate
        self._options = dict(options or {})
        self._cursor = None
        self._closed = False

    @property
    def options(self) -> Dict[str, Any]:
        return dict(self._options)

    async def _open(self):
        collection, kwargs = self._aggregate.command_arguments()
        if "batchSize" in self._options:
            kwargs["batchSize"] = self._options["batchSize"]
        pipeline = self._aggregate.pipeline()
        logger.debug(f"Opening aggregation cursor on {collection.name}: {pipeline}")
        self._cursor = await collection.aggregate(pipeline, **kwargs)
        return self._cursor

    async def next(self) -> Optional[Dict[str, Any]]:
        if self._closed:
            return None
        cursor = self._cursor if self._cursor is not None else await self._open()
        try:
            return await cursor.next()
        except StopAsyncIteration:
            return None

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._cursor is not None:
            await self._cursor.close()
            self._cursor = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def __aiter__(self):
        return self

    async def __anext__(self):
        doc = await self.next()
        if doc is None:
            raise StopAsyncIteration
        return doc


class Aggregate:
    """Aggregation pipeline under construction for one model.

    Stage methods mutate the aggregate and return it so calls can be chained.
    """

    def __init__(self, model: Any = None, pipeline: Optional[List[Dict[str, Any]]] = None):
        self._model = model
        self._pipeline = list(pipeline or [])
        self.options: Dict[str, Any] = {}
        self._read_preference = None
        self._read_concern = None
        self._session = None

    def model(self, model: Any = _UNSET) -> Any:
        """Return the bound model, or bind ``model`` and return it."""
        if model is _UNSET:
            return self._model
        self._model = model
        return model

    def pipeline(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._pipeline)

    def append(self, *stages: Dict[str, Any]) -> "Aggregate":
        for stage in stages:
            if not isinstance(stage, dict) or len(stage) != 1:
                raise TypeError(f"Aggregation stage must be a single-key dict, got {stage!r}")
            self._pipeline.append(stage)
        return self

    def add_fields(self, fields: Dict[str, Any]) -> "Aggregate":
        return self.append({"$addFields": fields})

    def match(self, criteria: Dict[str, Any]) -> "Aggregate":
        return self.append({"$match": criteria})

    def project(self, spec: SpecOrStr) -> "Aggregate":
        return self.append({"$project": _parse_projection(spec)})

    def group(self, spec: Dict[str, Any]) -> "Aggregate":
        return self.append({"$group": spec})

    def sort(self, spec: SpecOrStr) -> "Aggregate":
        return self.append({"$sort": _parse_sort(spec)})

    def limit(self, count: int) -> "Aggregate":
        return self.append({"$limit": count})

    def skip(self, count: int) -> "Aggregate":
        return self.append({"$skip": count})

    def sample(self, size: int) -> "Aggregate":
        return self.append({"$sample": {"size": size}})

    def count(self, field: str) -> "Aggregate":
        return self.append({"$count": field})

    def sort_by_count(self, expression: Any) -> "Aggregate":
        return self.append({"$sortByCount": _field_path(expression)})

    def unwind(self, *fields: SpecOrStr) -> "Aggregate":
        for field in fields:
            self.append({"$unwind": _field_path(field)})
        return self

    def lookup(self, options: Dict[str, Any]) -> "Aggregate":
        return self.append({"$lookup": options})

    def graph_lookup(self, options: Dict[str, Any]) -> "Aggregate":
        return self.append({"$graphLookup": options})

    def facet(self, facets: Dict[str, List[Dict[str, Any]]]) -> "Aggregate":
        return self.append({"$facet": facets})

    def near(self, options: Dict[str, Any]) -> "Aggregate":
        return self.append({"$geoNear": options})

    def redact(self, expression: Any, then: Optional[str] = None, otherwise: Optional[str] = None) -> "Aggregate":
        if then is not None and otherwise is not None:
            expression = {"$cond": {"if": expression, "then": then, "else": otherwise}}
        return self.append({"$redact": expression})

    def replace_root(self, new_root: Any) -> "Aggregate":
        return self.append({"$replaceRoot": {"newRoot": _field_path(new_root)}})

    def search(self, options: Dict[str, Any]) -> "Aggregate":
        return self.append({"$search": options})

    def allow_disk_use(self, value: bool = True) -> "Aggregate":
        self.options["allowDiskUse"] = value
        return self

    def collation(self, collation: Dict[str, Any]) -> "Aggregate":
        self.options["collation"] = collation
        return self

    def hint(self, hint: Any) -> "Aggregate":
        self.options["hint"] = hint
        return self

    def option(self, options: Dict[str, Any]) -> "Aggregate":
        self.options.update(options)
        return self

    def add_cursor_flag(self, flag: str, value: bool) -> "Aggregate":
        self.options[flag] = value
        return self

    def read(self, preference: Any) -> "Aggregate":
        if isinstance(preference, str):
            try:
                preference = READ_PREFERENCES[preference]
            except KeyError:
                raise ValueError(f"Unknown read preference: {preference}") from None
        self._read_preference = preference
        return self

    def read_concern(self, level: str) -> "Aggregate":
        self._read_concern = ReadConcern(level)
        return self

    def session(self, session: Any) -> "Aggregate":
        self._session = session
        return self

    def command_arguments(self):
        """Return the collection to aggregate on and the keyword arguments to pass."""
        if self._model is None:
            raise ValueError("Aggregate is not bound to a model")
        collection = self._model.collection
        if self._read_preference is not None or self._read_concern is not None:
            collection = collection.with_options(
                read_preference=self._read_preference,
                read_concern=self._read_concern,
            )
        kwargs = dict(self.options)
        if self._session is not None:
            kwargs["session"] = self._session
        return collection, kwargs

    def cursor(self, options: Optional[Dict[str, Any]] = None) -> AggregateCursor:
        return AggregateCursor(self, options)

    async def explain(self, verbosity: str = "queryPlanner") -> Dict[str, Any]:
        """Run the pipeline through the ``explain`` command and return its output."""
        collection, kwargs = self.command_arguments()
        session = kwargs.pop("session", None)
        command = {"aggregate": collection.name, "pipeline": self.pipeline(), "cursor": {}, **kwargs}
        return await collection.database.command({"explain": command, "verbosity": verbosity}, session=session)

    def __repr__(self) -> str:
        return f"Aggregate({self._pipeline!r})"
