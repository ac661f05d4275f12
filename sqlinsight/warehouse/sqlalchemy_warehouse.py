import asyncio
import datetime
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from sqlinsight.core.logging import get_logger
from sqlinsight.warehouse.base import RawResult, StatementDescription

logger = get_logger(__name__)


def typed_value(value: Any) -> Dict[str, Any]:
    """Wrap a DB-API value the way the Redshift Data API wraps a Field."""
    if value is None:
        return {"isNull": True}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"longValue": value}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {"blobValue": bytes(value)}
    if isinstance(value, (datetime.date, datetime.time)):
        return {"stringValue": value.isoformat()}
    return {"stringValue": str(value)}


def type_name(values: Sequence[Any]) -> str:
    sample = next((v for v in values if v is not None), None)
    if isinstance(sample, bool):
        return "bool"
    if isinstance(sample, int):
        return "int8"
    if isinstance(sample, float):
        return "float8"
    if isinstance(sample, Decimal):
        return "numeric"
    if isinstance(sample, datetime.datetime):
        return "timestamp"
    if isinstance(sample, datetime.date):
        return "date"
    return "varchar"


class SQLAlchemyWarehouse:
    """Warehouse client over any async SQLAlchemy engine.

    Each submitted statement runs as its own asyncio task; ``describe`` reports
    the task state with Data API status strings so the coordinator treats this
    backend exactly like Redshift.
    """

    name = "sqlalchemy"

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._tasks: Dict[str, asyncio.Task] = {}

    @classmethod
    def from_url(cls, url: str) -> "SQLAlchemyWarehouse":
        options: Dict[str, Any] = {"echo": False, "pool_pre_ping": True}
        if not url.startswith("sqlite"):
            options.update(pool_size=10, max_overflow=20)
        return cls(create_async_engine(url, **options))

    async def submit(self, sql: str) -> Optional[str]:
        execution_id = uuid.uuid4().hex
        self._tasks[execution_id] = asyncio.create_task(self._run(sql))
        return execution_id

    async def _run(self, sql: str) -> Optional[RawResult]:
        async with self.engine.connect() as conn:
            result = await conn.execute(text(sql))
            if not result.returns_rows:
                await conn.commit()
                return None

            columns = list(result.keys())
            rows = [tuple(row) for row in result.fetchall()]

        column_values: List[List[Any]] = [[row[i] for row in rows] for i in range(len(columns))]
        return RawResult(
            columns=[
                {"name": name, "label": name, "typeName": type_name(column_values[i])}
                for i, name in enumerate(columns)
            ],
            rows=[[typed_value(value) for value in row] for row in rows],
            total_rows=len(rows),
        )

    def _task(self, execution_id: str) -> asyncio.Task:
        task = self._tasks.get(execution_id)
        if task is None:
            raise KeyError(f"Unknown execution id: {execution_id}")
        return task

    async def describe(self, execution_id: str) -> StatementDescription:
        task = self._task(execution_id)
        if not task.done():
            return StatementDescription(status="STARTED")
        if task.cancelled():
            self._tasks.pop(execution_id, None)
            return StatementDescription(status="ABORTED", error="Query execution was aborted")

        error = task.exception()
        if error is not None:
            self._tasks.pop(execution_id, None)
            return StatementDescription(status="FAILED", error=str(error))

        has_result_set = task.result() is not None
        if not has_result_set:
            self._tasks.pop(execution_id, None)
        return StatementDescription(status="FINISHED", has_result_set=has_result_set)

    async def fetch(self, execution_id: str) -> RawResult:
        task = self._tasks.pop(execution_id, None)
        if task is None or not task.done():
            raise KeyError(f"No finished result for execution id: {execution_id}")
        return task.result() or RawResult()

    async def cancel(self, execution_id: str) -> None:
        task = self._tasks.pop(execution_id, None)
        if task is not None and not task.done():
            task.cancel()

    async def dispose(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        self._tasks.clear()
        await self.engine.dispose()
        logger.info("Warehouse connections closed")
