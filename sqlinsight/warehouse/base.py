from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field


class StatementDescription(BaseModel):
    """One status read for a submitted statement, as reported by the provider."""

    status: str
    has_result_set: bool = False
    error: Optional[str] = None


class RawResult(BaseModel):
    """Provider result page before normalization.

    ``rows`` may hold typed-value envelopes (``{"longValue": 3}``,
    ``{"isNull": True}``, ...) or bare values.
    """

    columns: List[Dict[str, Any]] = Field(default_factory=list)
    rows: List[Any] = Field(default_factory=list)
    total_rows: Optional[int] = None


class WarehouseClient(Protocol):
    """Asynchronous submit / describe / fetch contract of an analytical warehouse."""

    name: str

    async def submit(self, sql: str) -> Optional[str]:
        ...

    async def describe(self, execution_id: str) -> StatementDescription:
        ...

    async def fetch(self, execution_id: str) -> RawResult:
        ...

    async def cancel(self, execution_id: str) -> None:
        ...
