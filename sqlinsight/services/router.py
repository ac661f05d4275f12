from typing import Any, Optional, Sequence

from sqlinsight.core.cancellation import CancellationToken
from sqlinsight.core.config import Settings
from sqlinsight.core.errors import ClassificationError, QueryCancelledError
from sqlinsight.core.logging import get_logger
from sqlinsight.core.models import ConversationTurn, ErrorType, IntentLabel, RoutedResponse
from sqlinsight.llm.intent import IntentClassifier
from sqlinsight.llm.provider import ModelClient
from sqlinsight.llm.responders import ChatResponder, ClarificationAdvisor
from sqlinsight.services.query_service import OrchestrationPipeline

logger = get_logger(__name__)


class MessageRouter:
    """Classify a message and hand it to the matching handler."""

    def __init__(
        self,
        classifier: IntentClassifier,
        pipeline: OrchestrationPipeline,
        chat: ChatResponder,
        advisor: ClarificationAdvisor,
    ):
        self.classifier = classifier
        self.pipeline = pipeline
        self.chat = chat
        self.advisor = advisor

    @classmethod
    def from_clients(cls, llm: ModelClient, pipeline: OrchestrationPipeline,
                     settings: Settings) -> "MessageRouter":
        return cls(
            classifier=IntentClassifier(llm, settings),
            pipeline=pipeline,
            chat=ChatResponder(llm, settings),
            advisor=ClarificationAdvisor(llm, settings),
        )

    async def route(
        self,
        message: str,
        schema: Any,
        history: Sequence[ConversationTurn],
        cancellation: Optional[CancellationToken] = None,
    ) -> RoutedResponse:
        history = tuple(history)
        logger.info(f"Processing message: {message}")

        try:
            intent = await self.classifier.classify(message, history, cancellation)
        except ClassificationError as e:
            return RoutedResponse(error=str(e), error_type=ErrorType.CLASSIFICATION_ERROR)
        except QueryCancelledError as e:
            return RoutedResponse(error=str(e), error_type=ErrorType.CANCELLED)

        try:
            if intent == IntentLabel.QL:
                envelope = await self.pipeline.orchestrate(message, schema, history, cancellation)
                return RoutedResponse(intent=intent, envelope=envelope)

            if intent == IntentLabel.REDSHIFT:
                query = await self.pipeline.generator.draft(message, schema, cancellation)
                return RoutedResponse(intent=intent, sql=query.sql)

            if intent == IntentLabel.CHAT:
                content = await self.chat.respond(message, history, cancellation)
                return RoutedResponse(intent=intent, content=content)

            clarification = await self.advisor.clarify(message, schema, history, cancellation)
            return RoutedResponse(intent=intent, clarification=clarification)

        except QueryCancelledError as e:
            return RoutedResponse(intent=intent, error=str(e), error_type=ErrorType.CANCELLED)
        except Exception as e:
            logger.error(f"Error handling {intent.value} message: {e}")
            return RoutedResponse(intent=intent, error=str(e), error_type=ErrorType.GENERATION_ERROR)
