from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ConversationTurn(BaseModel):
    """One message of the caller-owned conversation history."""
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class IntentLabel(str, Enum):
    CHAT = "chat"
    QL = "ql"
    REDSHIFT = "redshift"
    MISSING = "missing"


class GeneratedQuery(BaseModel):
    """SQL text produced for exactly one request. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    sql: str
    request_id: str


class ColumnInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type_name: Optional[str] = None
    label: Optional[str] = None


class ResultSet(BaseModel):
    """Uniform tabular result: cells are aligned by position with ``column_metadata``."""

    column_metadata: List[ColumnInfo] = Field(default_factory=list)
    records: List[List[Any]] = Field(default_factory=list)
    total_row_count: int = 0

    @model_validator(mode="after")
    def _check_row_width(self):
        width = len(self.column_metadata)
        for index, record in enumerate(self.records):
            if len(record) != width:
                raise ValueError(
                    f"record {index} has {len(record)} cells but there are {width} columns"
                )
        return self

    @classmethod
    def empty(cls) -> "ResultSet":
        return cls(column_metadata=[], records=[], total_row_count=0)

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.column_metadata]

    def as_records(self) -> List[Dict[str, Any]]:
        """Rows as dicts keyed by column label (or name)."""
        keys = [
            column.label or column.name or f"column{index}"
            for index, column in enumerate(self.column_metadata)
        ]
        return [dict(zip(keys, record)) for record in self.records]


class Insight(BaseModel):
    text: str
    rows_embedded: int = 0
    truncated: bool = False


class ErrorType(str, Enum):
    GENERATION_ERROR = "generation_error"
    EXECUTION_ERROR = "execution_error"
    CANCELLED = "cancelled"
    CLASSIFICATION_ERROR = "classification_error"


class SuccessEnvelope(BaseModel):
    status: Literal["success"] = "success"
    query: str
    result: ResultSet
    insights: str


class ErrorEnvelope(BaseModel):
    status: Literal["error"] = "error"
    error: str
    error_type: ErrorType
    query: Optional[str] = None


Envelope = Union[SuccessEnvelope, ErrorEnvelope]


class Clarification(BaseModel):
    missing_info: str = ""
    questions: List[str] = Field(default_factory=list)


class RoutedResponse(BaseModel):
    """What the message router hands back for one user message."""

    intent: Optional[IntentLabel] = None
    envelope: Optional[Envelope] = None
    sql: Optional[str] = None
    content: Optional[str] = None
    clarification: Optional[Clarification] = None
    error: Optional[str] = None
    error_type: Optional[ErrorType] = None
