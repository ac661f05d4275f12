import json
import re
from typing import Any, Optional, Sequence

from sqlinsight.core.cancellation import CancellationToken
from sqlinsight.core.config import Settings
from sqlinsight.core.errors import GenerationError, QueryCancelledError
from sqlinsight.core.logging import get_logger
from sqlinsight.core.models import Clarification, ConversationTurn
from sqlinsight.llm.prompts import CHAT_PROMPT, CLARIFY_PROMPT, format_history, format_schema
from sqlinsight.llm.provider import ModelClient, collect_text

logger = get_logger(__name__)


class ChatResponder:
    """Free-form answer for messages that need no data access."""

    def __init__(self, llm: ModelClient, settings: Settings):
        self.llm = llm
        self.max_tokens = settings.CHAT_MAX_TOKENS
        self.history_window = settings.HISTORY_WINDOW

    async def respond(
        self,
        message: str,
        history: Sequence[ConversationTurn],
        cancellation: Optional[CancellationToken] = None,
    ) -> str:
        prompt = CHAT_PROMPT.format(
            history=format_history(history, self.history_window),
            message=message,
        )
        try:
            text = await collect_text(self.llm, prompt, self.max_tokens, cancellation)
        except QueryCancelledError:
            raise
        except Exception as e:
            logger.error(f"Chat response failed: {e}")
            raise GenerationError(f"Chat response failed: {e}") from e

        text = text.strip()
        if not text:
            raise GenerationError("Model returned an empty chat response")
        return text


def parse_clarification(raw: str) -> Clarification:
    text = raw.strip()
    text = re.sub(r'^```[a-zA-Z]*\s*\n?', '', text)
    text = re.sub(r'\n?```\s*$', '', text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GenerationError(f"Clarification is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise GenerationError("Clarification JSON must be an object")

    questions = data.get("questions") or []
    if isinstance(questions, str):
        questions = [questions]
    return Clarification(
        missing_info=str(data.get("missingInfo") or data.get("missing_info") or ""),
        questions=[str(q) for q in questions],
    )


class ClarificationAdvisor:
    """Work out what is missing from a request and which follow-up questions to ask."""

    def __init__(self, llm: ModelClient, settings: Settings):
        self.llm = llm
        self.max_tokens = settings.CLARIFY_MAX_TOKENS
        self.history_window = settings.HISTORY_WINDOW

    async def clarify(
        self,
        message: str,
        schema: Any,
        history: Sequence[ConversationTurn],
        cancellation: Optional[CancellationToken] = None,
    ) -> Clarification:
        prompt = CLARIFY_PROMPT.format(
            history=format_history(history, self.history_window),
            schema=format_schema(schema),
            message=message,
        )
        try:
            raw = await collect_text(self.llm, prompt, self.max_tokens, cancellation)
        except QueryCancelledError:
            raise
        except Exception as e:
            logger.error(f"Clarification request failed: {e}")
            raise GenerationError(f"Clarification request failed: {e}") from e

        return parse_clarification(raw)
