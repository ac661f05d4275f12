from typing import Any, Optional, Sequence
import re
import uuid

from sqlinsight.core.cancellation import CancellationToken
from sqlinsight.core.config import Settings
from sqlinsight.core.errors import GenerationError, QueryCancelledError
from sqlinsight.core.logging import get_logger
from sqlinsight.core.models import ConversationTurn, GeneratedQuery
from sqlinsight.llm.prompts import DRAFT_SQL_PROMPT, SQL_PROMPT, format_history, format_schema
from sqlinsight.llm.provider import ModelClient, collect_text

logger = get_logger(__name__)


def extract_sql(response: str) -> str:
    """Strip markdown fences and answer prefixes the model sometimes adds."""
    sql = response.strip()
    sql = re.sub(r'^```[a-zA-Z]*\s*\n?', '', sql)
    sql = re.sub(r'\n?```\s*$', '', sql)
    sql = re.sub(r'^(SQL Query:|Query:|Answer:)\s*', '', sql, flags=re.IGNORECASE)
    return sql.strip()


class QueryGenerator:
    """Turn a natural-language question into warehouse SQL with one model call."""

    def __init__(self, llm: ModelClient, settings: Settings):
        self.llm = llm
        self.max_tokens = settings.GENERATOR_MAX_TOKENS
        self.history_window = settings.HISTORY_WINDOW

    async def generate(
        self,
        message: str,
        schema: Any,
        history: Sequence[ConversationTurn],
        cancellation: Optional[CancellationToken] = None,
        request_id: Optional[str] = None,
    ) -> GeneratedQuery:
        prompt = SQL_PROMPT.format(
            history=format_history(history, self.history_window),
            schema=format_schema(schema),
            message=message,
        )
        return await self._run(prompt, cancellation, request_id)

    async def draft(
        self,
        message: str,
        schema: Any,
        cancellation: Optional[CancellationToken] = None,
        request_id: Optional[str] = None,
    ) -> GeneratedQuery:
        """Write SQL for the user to read; it is not executed and ignores history."""
        prompt = DRAFT_SQL_PROMPT.format(schema=format_schema(schema), message=message)
        return await self._run(prompt, cancellation, request_id)

    async def _run(self, prompt: str, cancellation: Optional[CancellationToken],
                   request_id: Optional[str]) -> GeneratedQuery:
        try:
            response = await collect_text(self.llm, prompt, self.max_tokens, cancellation)
        except QueryCancelledError:
            raise
        except Exception as e:
            logger.error(f"SQL generation failed: {e}")
            raise GenerationError(str(e)) from e

        sql = extract_sql(response)
        if not sql:
            raise GenerationError("Model returned no SQL text")

        query = GeneratedQuery(sql=sql, request_id=request_id or uuid.uuid4().hex)
        logger.info(f"Generated SQL: {sql}")
        return query
