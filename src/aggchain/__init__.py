import logging

from aggchain.aggregation import (
    AggregationBuilder,
    AggregationError,
    ChainEntry,
    ChainRecorder,
    NestedCountError,
    OperationKind,
    UnboundModelError,
    UnknownOperationError,
)
from aggchain.mongo import Aggregate, AggregateCursor, Model, ModelSettings, MongoManager, Registry
from aggchain.util.config import configure_logger, get_config

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())
