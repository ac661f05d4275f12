from pydantic import BaseModel, Field
from typing import List

from sqlinsight.core.models import ConversationTurn, IntentLabel


class QueryRequest(BaseModel):
    message: str = Field(..., min_length=1, description="Natural language question")
    history: List[ConversationTurn] = Field(default_factory=list, description="Prior turns, oldest first")


class IntentResponse(BaseModel):
    intent: IntentLabel


class HealthResponse(BaseModel):
    status: str
    model: str
    warehouse: str
    schema_loaded: bool
