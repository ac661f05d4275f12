from enum import Enum
from typing import Optional, Sequence

from sqlinsight.core.cancellation import CancellationToken
from sqlinsight.core.config import Settings
from sqlinsight.core.errors import QueryCancelledError, SynthesisError
from sqlinsight.core.logging import get_logger
from sqlinsight.core.models import ConversationTurn, Insight, ResultSet
from sqlinsight.llm.prompts import (
    ANSWER_PROMPT,
    INSIGHTS_PROMPT,
    format_history,
    format_result_set,
)
from sqlinsight.llm.provider import ModelClient, collect_text

logger = get_logger(__name__)


class InsightMode(str, Enum):
    INSIGHTS = "insights"
    ANSWER = "answer"


class InsightSynthesizer:
    """Explain a result set in prose for the question that produced it."""

    def __init__(self, llm: ModelClient, settings: Settings, mode: Optional[InsightMode] = None):
        self.llm = llm
        self.max_tokens = settings.INSIGHT_MAX_TOKENS
        self.max_rows = settings.INSIGHT_MAX_ROWS
        self.history_window = settings.HISTORY_WINDOW
        self.mode = mode or InsightMode(settings.INSIGHT_MODE)

    def build_prompt(self, result: ResultSet, question: str,
                     history: Sequence[ConversationTurn]) -> tuple[str, int, bool]:
        results_text, embedded, truncated = format_result_set(result, self.max_rows)
        truncation_note = ""
        if truncated:
            truncation_note = (
                f"\nNote: only the first {embedded} of {len(result.records)} returned rows are shown "
                f"above; base any totals on totalNumRows rather than counting rows.\n"
            )
        template = ANSWER_PROMPT if self.mode == InsightMode.ANSWER else INSIGHTS_PROMPT
        prompt = template.format(
            history=format_history(history, self.history_window),
            question=question,
            results=results_text,
            truncation_note=truncation_note,
        )
        return prompt, embedded, truncated

    async def synthesize(
        self,
        result: ResultSet,
        question: str,
        history: Sequence[ConversationTurn],
        cancellation: Optional[CancellationToken] = None,
    ) -> Insight:
        prompt, embedded, truncated = self.build_prompt(result, question, history)
        if truncated:
            logger.warning(
                f"Result set truncated for insight prompt: {embedded}/{len(result.records)} rows embedded"
            )

        try:
            text = await collect_text(self.llm, prompt, self.max_tokens, cancellation)
        except QueryCancelledError:
            raise
        except Exception as e:
            logger.error(f"Insight generation failed: {e}")
            raise SynthesisError(f"Insight generation failed: {e}") from e

        text = text.strip()
        if not text:
            raise SynthesisError("Model returned no insight text")

        return Insight(text=text, rows_embedded=embedded, truncated=truncated)
