"""Exceptions raised by the aggregation builder and its execution strategies."""


class AggregationError(Exception):
    """Base class for errors raised by aggchain itself.

    Errors raised by the underlying executor or cursor are never wrapped; they
    propagate to the caller unchanged.
    """


class UnknownOperationError(AggregationError, AttributeError):
    """Raised when a builder is asked for a verb it does not know.

    Subclasses AttributeError so that ``getattr(builder, name, default)`` and
    ``hasattr`` keep working.
    """

    def __init__(self, verb: str):
        super().__init__(
            f"'{verb}' is not a known aggregation operation; "
            f"use custom_stage('{verb}', ...) to append an arbitrary stage"
        )
        self.verb = verb


class UnboundModelError(AggregationError):
    """Raised when an execution trigger runs without a bound data source."""


class NestedCountError(AggregationError):
    """Raised when counting a chain that already ends in a count stage."""
