"""Exception taxonomy for the query orchestration engine.

Errors are grouped by the pipeline phase that raises them. The pipeline maps
``GenerationError`` (and anything else raised before submission) to a
``generation_error`` envelope and every ``WarehouseError`` or later failure to
an ``execution_error`` envelope that carries the generated SQL.
"""
from typing import Optional


class SQLInsightError(Exception):
    """Base class for every error raised by sqlinsight."""


class ModelInvocationError(SQLInsightError):
    """The model service could not be reached or broke off mid-stream."""


class ClassificationError(SQLInsightError):
    """The classifier call failed or returned a label outside the known set."""

    def __init__(self, message: str, raw_label: Optional[str] = None):
        super().__init__(message)
        self.raw_label = raw_label


class GenerationError(SQLInsightError):
    """SQL (or other model text) could not be produced."""


class SynthesisError(GenerationError):
    """Insight text could not be produced from a result set."""


class WarehouseError(SQLInsightError):
    """Base class for failures at or after statement submission."""

    def __init__(self, message: str, execution_id: Optional[str] = None):
        super().__init__(message)
        self.execution_id = execution_id


class SubmissionError(WarehouseError):
    """The warehouse refused the statement or returned no execution id."""


class PollError(WarehouseError):
    """A status read failed in transport. Not retried."""


class ExecutionError(WarehouseError):
    """The warehouse reported FAILED or ABORTED for the statement."""

    def __init__(self, message: str, execution_id: Optional[str] = None,
                 provider_message: Optional[str] = None, status: Optional[str] = None):
        super().__init__(message, execution_id)
        self.provider_message = provider_message
        self.status = status


class QueryTimeoutError(WarehouseError, TimeoutError):
    """The poll ceiling was reached without a terminal status."""

    def __init__(self, message: str, execution_id: Optional[str] = None, attempts: int = 0):
        super().__init__(message, execution_id)
        self.attempts = attempts


class TransformError(WarehouseError):
    """The provider returned a result payload that cannot be normalized."""


class QueryCancelledError(SQLInsightError):
    """The request was cancelled before the pipeline finished."""
