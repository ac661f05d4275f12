import asyncio
import time
import uuid
from typing import Any, Optional, Sequence

from sqlinsight.core.cancellation import CancellationToken
from sqlinsight.core.config import Settings
from sqlinsight.core.errors import GenerationError, QueryCancelledError
from sqlinsight.core.logging import get_logger
from sqlinsight.core.models import (
    ConversationTurn,
    Envelope,
    ErrorEnvelope,
    ErrorType,
    GeneratedQuery,
    SuccessEnvelope,
)
from sqlinsight.llm.provider import ModelClient
from sqlinsight.llm.sql_agent import QueryGenerator
from sqlinsight.llm.summarizer import InsightSynthesizer
from sqlinsight.llm.validator import SQLValidator
from sqlinsight.warehouse.base import WarehouseClient
from sqlinsight.warehouse.execution import ExecutionCoordinator
from sqlinsight.warehouse.transformer import ResultTransformer

logger = get_logger(__name__)


class _Run:
    """Per-request bookkeeping; lets a deadline report which phase was reached."""

    def __init__(self) -> None:
        self.request_id = uuid.uuid4().hex
        self.query: Optional[GeneratedQuery] = None


class OrchestrationPipeline:
    """generate -> execute -> transform -> synthesize, with phase-aware error envelopes."""

    def __init__(
        self,
        generator: QueryGenerator,
        coordinator: ExecutionCoordinator,
        transformer: ResultTransformer,
        synthesizer: InsightSynthesizer,
        validator: Optional[SQLValidator] = None,
        pipeline_timeout: Optional[float] = None,
    ):
        self.generator = generator
        self.coordinator = coordinator
        self.transformer = transformer
        self.synthesizer = synthesizer
        self.validator = validator
        self.pipeline_timeout = pipeline_timeout

    @classmethod
    def from_clients(cls, llm: ModelClient, warehouse: WarehouseClient,
                     settings: Settings) -> "OrchestrationPipeline":
        return cls(
            generator=QueryGenerator(llm, settings),
            coordinator=ExecutionCoordinator(warehouse, settings),
            transformer=ResultTransformer(),
            synthesizer=InsightSynthesizer(llm, settings),
            validator=SQLValidator() if settings.READ_ONLY_GUARD else None,
            pipeline_timeout=settings.PIPELINE_TIMEOUT_SECONDS,
        )

    async def orchestrate(
        self,
        message: str,
        schema: Any,
        history: Sequence[ConversationTurn],
        cancellation: Optional[CancellationToken] = None,
    ) -> Envelope:
        start_time = time.time()
        run = _Run()
        # Snapshot: the caller's list is only ever read
        history = tuple(history)
        logger.info(f"=== Starting query generation and execution ({run.request_id}) ===")

        if self.pipeline_timeout:
            try:
                envelope = await asyncio.wait_for(
                    self._run(run, message, schema, history, cancellation),
                    timeout=self.pipeline_timeout,
                )
            except asyncio.TimeoutError:
                logger.error(f"Request {run.request_id} exceeded {self.pipeline_timeout}s")
                envelope = self._timed_out(run)
        else:
            envelope = await self._run(run, message, schema, history, cancellation)

        elapsed = int((time.time() - start_time) * 1000)
        logger.info(f"Request {run.request_id} finished: {envelope.status} | time={elapsed}ms")
        return envelope

    async def _run(self, run: _Run, message: str, schema: Any,
                   history: Sequence[ConversationTurn],
                   cancellation: Optional[CancellationToken]) -> Envelope:
        try:
            query = await self.generator.generate(
                message, schema, history, cancellation, request_id=run.request_id
            )
            self._check_read_only(query)
        except QueryCancelledError as e:
            return ErrorEnvelope(error=str(e), error_type=ErrorType.CANCELLED)
        except Exception as e:
            logger.error(f"Query generation error: {e}")
            return ErrorEnvelope(
                error=f"Failed to generate SQL query: {e}",
                error_type=ErrorType.GENERATION_ERROR,
            )

        run.query = query
        try:
            raw = await self.coordinator.execute(query, cancellation)
            result = self.transformer.transform(raw)
            logger.info(
                f"Results: {result.total_row_count} rows, {len(result.column_metadata)} columns"
            )
            insight = await self.synthesizer.synthesize(result, message, history, cancellation)
        except QueryCancelledError as e:
            return ErrorEnvelope(error=str(e), error_type=ErrorType.CANCELLED, query=query.sql)
        except Exception as e:
            logger.error(f"Query execution error: {e}")
            return ErrorEnvelope(
                error=str(e) or "Error executing query",
                error_type=ErrorType.EXECUTION_ERROR,
                query=query.sql,
            )

        return SuccessEnvelope(query=query.sql, result=result, insights=insight.text)

    def _check_read_only(self, query: GeneratedQuery) -> None:
        if self.validator is None:
            return
        is_valid, error = self.validator.validate(query.sql)
        if not is_valid:
            raise GenerationError(f"Generated SQL rejected: {error}")

    def _timed_out(self, run: _Run) -> ErrorEnvelope:
        message = f"Request timed out after {self.pipeline_timeout}s"
        if run.query is None:
            return ErrorEnvelope(error=f"Failed to generate SQL query: {message}",
                                 error_type=ErrorType.GENERATION_ERROR)
        return ErrorEnvelope(error=message, error_type=ErrorType.EXECUTION_ERROR,
                             query=run.query.sql)
