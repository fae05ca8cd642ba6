from aggchain.aggregation.builder import AggregationBuilder
from aggchain.aggregation.chain import ChainEntry, ChainRecorder
from aggchain.aggregation.errors import AggregationError, NestedCountError, UnboundModelError, UnknownOperationError
from aggchain.aggregation.operations import OperationKind, VERBS, classify
from aggchain.aggregation.strategies import count_documents, drain, exec_with_cursor
