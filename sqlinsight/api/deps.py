import asyncio
from typing import Any, AsyncGenerator

from fastapi import Request

from sqlinsight.core.cancellation import CancellationToken
from sqlinsight.core.logging import get_logger
from sqlinsight.llm.intent import IntentClassifier
from sqlinsight.services.query_service import OrchestrationPipeline
from sqlinsight.services.router import MessageRouter

logger = get_logger(__name__)

DISCONNECT_POLL_SECONDS = 0.5


def get_pipeline(request: Request) -> OrchestrationPipeline:
    return request.app.state.pipeline


def get_router(request: Request) -> MessageRouter:
    return request.app.state.router


def get_classifier(request: Request) -> IntentClassifier:
    return request.app.state.router.classifier


def get_schema(request: Request) -> Any:
    return request.app.state.schema_metadata


async def get_cancellation(request: Request) -> AsyncGenerator[CancellationToken, None]:
    """Cancellation token that trips when the HTTP client goes away."""
    token = CancellationToken()

    async def watch() -> None:
        while not token.is_cancelled():
            if await request.is_disconnected():
                logger.info("Client disconnected, cancelling request")
                token.cancel("client disconnected")
                return
            await asyncio.sleep(DISCONNECT_POLL_SECONDS)

    watcher = asyncio.create_task(watch())
    try:
        yield token
    finally:
        watcher.cancel()
