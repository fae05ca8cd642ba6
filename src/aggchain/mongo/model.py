from typing import Any, Dict, List, Optional

from aggchain.aggregation.builder import AggregationBuilder
from aggchain.mongo.aggregate import Aggregate


class Model:
    """A named handle on one MongoDB collection.

    Models are the data sources aggregations are bound to: ``aggregate()``
    hands out a fresh executor each time, and ``aggregation()`` wraps one in a
    chainable, awaitable builder.
    """

    def __init__(self, name: str, collection: Any):
        self.name = name
        self.collection = collection

    def aggregate(self, pipeline: Optional[List[Dict[str, Any]]] = None) -> Aggregate:
        return Aggregate(self, pipeline)

    def aggregation(self) -> AggregationBuilder:
        return AggregationBuilder.from_source(self)

    def __repr__(self) -> str:
        return f"Model({self.name!r})"
