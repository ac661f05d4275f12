from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from sqlinsight.api.deps import (
    get_cancellation,
    get_classifier,
    get_pipeline,
    get_router,
    get_schema,
)
from sqlinsight.api.models import HealthResponse, IntentResponse, QueryRequest
from sqlinsight.core.cancellation import CancellationToken
from sqlinsight.core.errors import ClassificationError, QueryCancelledError
from sqlinsight.core.logging import get_logger
from sqlinsight.core.models import Envelope, RoutedResponse
from sqlinsight.llm.intent import IntentClassifier
from sqlinsight.services.query_service import OrchestrationPipeline
from sqlinsight.services.router import MessageRouter

logger = get_logger(__name__)
router = APIRouter(prefix="/api/v1", tags=["SQL Insight"])


@router.post("/query", response_model=Envelope)
async def query_endpoint(
    request: QueryRequest,
    pipeline: OrchestrationPipeline = Depends(get_pipeline),
    schema: Any = Depends(get_schema),
    cancellation: CancellationToken = Depends(get_cancellation),
):
    """Natural language question -> SQL -> execution -> insights."""
    logger.info("Processing query request")
    return await pipeline.orchestrate(request.message, schema, request.history, cancellation)


@router.post("/intent", response_model=IntentResponse)
async def intent_endpoint(
    request: QueryRequest,
    classifier: IntentClassifier = Depends(get_classifier),
    cancellation: CancellationToken = Depends(get_cancellation),
):
    """Classify a message without acting on it."""
    try:
        intent = await classifier.classify(request.message, request.history, cancellation)
    except ClassificationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except QueryCancelledError as e:
        raise HTTPException(status_code=499, detail=str(e))
    return IntentResponse(intent=intent)


@router.post("/message", response_model=RoutedResponse)
async def message_endpoint(
    request: QueryRequest,
    message_router: MessageRouter = Depends(get_router),
    schema: Any = Depends(get_schema),
    cancellation: CancellationToken = Depends(get_cancellation),
):
    """Classify a message and answer it with the matching handler."""
    return await message_router.route(request.message, schema, request.history, cancellation)


@router.get("/health", response_model=HealthResponse)
async def health_check(http_request: Request):
    """Report which model and warehouse the service was started with."""
    state = http_request.app.state
    pipeline = getattr(state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return HealthResponse(
        status="ok",
        model=state.llm.model_name,
        warehouse=pipeline.coordinator.client.name,
        schema_loaded=state.schema_metadata is not None,
    )
