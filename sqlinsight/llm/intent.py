from typing import Optional, Sequence

from sqlinsight.core.cancellation import CancellationToken
from sqlinsight.core.config import Settings
from sqlinsight.core.errors import ClassificationError, QueryCancelledError
from sqlinsight.core.logging import get_logger
from sqlinsight.core.models import ConversationTurn, IntentLabel
from sqlinsight.llm.prompts import INTENT_PROMPT, format_history
from sqlinsight.llm.provider import ModelClient, collect_text

logger = get_logger(__name__)

_LABELS = {label.value: label for label in IntentLabel}


def parse_label(raw: str) -> IntentLabel:
    """Map raw model output to an IntentLabel. Unknown tokens are an error."""
    token = raw.strip().strip("\"'`.").strip().lower()
    label = _LABELS.get(token)
    if label is None:
        raise ClassificationError(f"Unrecognized intent label: {raw.strip()!r}", raw_label=raw)
    return label


class IntentClassifier:
    """Decide which handler a user message needs."""

    def __init__(self, llm: ModelClient, settings: Settings):
        self.llm = llm
        self.max_tokens = settings.CLASSIFIER_MAX_TOKENS
        self.history_window = settings.HISTORY_WINDOW

    def build_prompt(self, message: str, history: Sequence[ConversationTurn]) -> str:
        return INTENT_PROMPT.format(
            history=format_history(history, self.history_window),
            message=message,
        )

    async def classify(
        self,
        message: str,
        history: Sequence[ConversationTurn],
        cancellation: Optional[CancellationToken] = None,
    ) -> IntentLabel:
        prompt = self.build_prompt(message, history)
        try:
            raw = await collect_text(self.llm, prompt, self.max_tokens, cancellation)
        except QueryCancelledError:
            raise
        except Exception as e:
            logger.error(f"Intent classification failed: {e}")
            raise ClassificationError(f"Intent classification failed: {e}") from e

        label = parse_label(raw)
        logger.info(f"Detected intent: {label.value}")
        return label
