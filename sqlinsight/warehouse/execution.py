"""Statement execution against the warehouse.

A submitted statement is tracked by a :class:`QueryExecution` whose status
moves through a closed state machine::

    SUBMITTED -> RUNNING (repeatable) -> FINISHED | FAILED | ABORTED
                                      -> TIMED_OUT (raised locally when the
                                                    poll ceiling is reached)

FINISHED, FAILED, ABORTED and TIMED_OUT are absorbing. Once an execution has
reached one of them, :meth:`ExecutionCoordinator.wait` returns the recorded
outcome again without calling the provider. A timed-out or cancelled statement
is also cancelled on the warehouse side.

Results are fetched in a single ``fetch`` call once the provider reports
FINISHED. There is no pagination: the provider's own page limit caps what a
query can return, so very large result sets are cut off at that limit.
"""
import asyncio
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from sqlinsight.core.cancellation import CancellationToken, check
from sqlinsight.core.config import Settings
from sqlinsight.core.errors import (
    ExecutionError,
    PollError,
    QueryCancelledError,
    QueryTimeoutError,
    SubmissionError,
)
from sqlinsight.core.logging import get_logger
from sqlinsight.core.models import GeneratedQuery
from sqlinsight.warehouse.base import RawResult, StatementDescription, WarehouseClient

logger = get_logger(__name__)


class ExecutionStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"
    FAILED = "FAILED"
    ABORTED = "ABORTED"
    TIMED_OUT = "TIMED_OUT"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[ExecutionStatus] = frozenset({
    ExecutionStatus.FINISHED,
    ExecutionStatus.FAILED,
    ExecutionStatus.ABORTED,
    ExecutionStatus.TIMED_OUT,
})

_LIVE_TARGETS = frozenset({ExecutionStatus.RUNNING}) | TERMINAL_STATUSES

TRANSITIONS: Dict[ExecutionStatus, FrozenSet[ExecutionStatus]] = {
    ExecutionStatus.SUBMITTED: _LIVE_TARGETS,
    ExecutionStatus.RUNNING: _LIVE_TARGETS,
    ExecutionStatus.FINISHED: frozenset(),
    ExecutionStatus.FAILED: frozenset(),
    ExecutionStatus.ABORTED: frozenset(),
    ExecutionStatus.TIMED_OUT: frozenset(),
}

# Provider status strings with a terminal meaning. Every other string,
# including ones we have never seen, is the pending case.
_PROVIDER_TERMINAL = {
    "FINISHED": ExecutionStatus.FINISHED,
    "FAILED": ExecutionStatus.FAILED,
    "ABORTED": ExecutionStatus.ABORTED,
}


def status_from_provider(raw_status: Optional[str]) -> ExecutionStatus:
    terminal = _PROVIDER_TERMINAL.get((raw_status or "").strip().upper())
    if terminal is not None:
        return terminal
    return ExecutionStatus.RUNNING


class InvalidTransitionError(RuntimeError):
    pass


class QueryExecution:
    """State of one submitted statement. Owned by the request that submitted it."""

    def __init__(self, execution_id: str, query: GeneratedQuery):
        self.id = execution_id
        self.query = query
        self.status = ExecutionStatus.SUBMITTED
        self.attempt_count = 0
        self.transitions: List[ExecutionStatus] = [ExecutionStatus.SUBMITTED]
        self._result: Optional[RawResult] = None
        self._error: Optional[Exception] = None

    def __repr__(self) -> str:
        return f"QueryExecution(id={self.id!r}, status={self.status.value}, attempts={self.attempt_count})"

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def advance(self, status: ExecutionStatus) -> None:
        if status not in TRANSITIONS[self.status]:
            raise InvalidTransitionError(f"{self.status.value} -> {status.value} is not allowed")
        self.status = status
        self.transitions.append(status)

    def finish(self, status: ExecutionStatus, result: Optional[RawResult] = None,
               error: Optional[Exception] = None) -> None:
        self.advance(status)
        self._result = result
        self._error = error

    def outcome(self) -> RawResult:
        """Replay the terminal outcome: the fetched page, or the recorded error."""
        if not self.is_terminal:
            raise InvalidTransitionError(f"execution {self.id} has not finished")
        if self._error is not None:
            raise self._error
        return self._result if self._result is not None else RawResult()


class ExecutionCoordinator:
    """Submit SQL to the warehouse and poll it to a terminal status."""

    def __init__(self, client: WarehouseClient, settings: Settings,
                 poll_interval: Optional[float] = None, max_attempts: Optional[int] = None):
        self.client = client
        self.poll_interval = settings.POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.max_attempts = settings.POLL_MAX_ATTEMPTS if max_attempts is None else max_attempts

    async def submit(self, query: GeneratedQuery,
                     cancellation: Optional[CancellationToken] = None) -> QueryExecution:
        check(cancellation)
        logger.info(f"Submitting query {query.request_id} to {self.client.name}")
        try:
            execution_id = await self.client.submit(query.sql)
        except Exception as e:
            logger.error(f"Query submission failed: {e}")
            raise SubmissionError(f"Query submission failed: {e}") from e

        if not execution_id:
            logger.error("Warehouse returned no execution id")
            raise SubmissionError("No query ID returned from warehouse")

        logger.info(f"Query {query.request_id} submitted as execution {execution_id}")
        return QueryExecution(execution_id, query)

    async def wait(self, execution: QueryExecution,
                   cancellation: Optional[CancellationToken] = None) -> RawResult:
        if execution.is_terminal:
            return execution.outcome()

        try:
            return await self._poll(execution, cancellation)
        except QueryCancelledError as e:
            await self._abandon(execution, e)
            raise
        except asyncio.CancelledError:
            await self._abandon(execution, QueryCancelledError("task cancelled"))
            raise

    async def execute(self, query: GeneratedQuery,
                      cancellation: Optional[CancellationToken] = None) -> RawResult:
        execution = await self.submit(query, cancellation)
        return await self.wait(execution, cancellation)

    async def _poll(self, execution: QueryExecution,
                    cancellation: Optional[CancellationToken]) -> RawResult:
        logger.info(f"Waiting for execution {execution.id} to complete...")

        while execution.attempt_count < self.max_attempts:
            check(cancellation)
            description = await self._describe(execution)
            status = status_from_provider(description.status)
            logger.debug(
                f"Execution {execution.id} status: {description.status} "
                f"(attempt {execution.attempt_count + 1}/{self.max_attempts})"
            )

            if status == ExecutionStatus.FINISHED:
                return await self._finish(execution, description, cancellation)

            if status in (ExecutionStatus.FAILED, ExecutionStatus.ABORTED):
                message = description.error or f"Query execution was {status.value.lower()}"
                error = ExecutionError(
                    message,
                    execution_id=execution.id,
                    provider_message=description.error,
                    status=status.value,
                )
                execution.finish(status, error=error)
                logger.error(f"Execution {execution.id} {status.value}: {message}")
                raise error

            # Pending: SUBMITTED, PICKED, STARTED, or anything unrecognized
            execution.advance(ExecutionStatus.RUNNING)
            execution.attempt_count += 1
            if execution.attempt_count < self.max_attempts:
                await self._sleep(cancellation)

        error = QueryTimeoutError(
            f"Query execution timed out after {execution.attempt_count} status checks",
            execution_id=execution.id,
            attempts=execution.attempt_count,
        )
        execution.finish(ExecutionStatus.TIMED_OUT, error=error)
        logger.error(f"Execution {execution.id} timed out")
        await self._cancel_statement(execution)
        raise error

    async def _describe(self, execution: QueryExecution) -> StatementDescription:
        try:
            return await self.client.describe(execution.id)
        except Exception as e:
            logger.error(f"Error checking status of execution {execution.id}: {e}")
            raise PollError(f"Error checking query status: {e}", execution_id=execution.id) from e

    async def _finish(self, execution: QueryExecution, description: StatementDescription,
                      cancellation: Optional[CancellationToken]) -> RawResult:
        if not description.has_result_set:
            logger.info(f"Execution {execution.id} completed without a result set")
            result = RawResult()
            execution.finish(ExecutionStatus.FINISHED, result=result)
            return result

        check(cancellation)
        logger.info(f"Fetching result set for execution {execution.id}...")
        try:
            result = await self.client.fetch(execution.id)
        except Exception as e:
            logger.error(f"Error fetching results of execution {execution.id}: {e}")
            raise PollError(f"Error fetching query results: {e}", execution_id=execution.id) from e

        execution.finish(ExecutionStatus.FINISHED, result=result)
        logger.info(f"Execution {execution.id} finished with {len(result.rows)} rows")
        return result

    async def _sleep(self, cancellation: Optional[CancellationToken]) -> None:
        if cancellation is not None:
            await cancellation.sleep(self.poll_interval)
        else:
            await asyncio.sleep(self.poll_interval)

    async def _abandon(self, execution: QueryExecution, error: QueryCancelledError) -> None:
        if execution.is_terminal:
            return
        logger.warning(f"Cancelling execution {execution.id}: {error}")
        await self._cancel_statement(execution)
        execution.finish(ExecutionStatus.ABORTED, error=error)

    async def _cancel_statement(self, execution: QueryExecution) -> None:
        # Best effort: the request has already given up on this statement
        try:
            await self.client.cancel(execution.id)
        except Exception as e:
            logger.warning(f"Could not cancel execution {execution.id}: {e}")
