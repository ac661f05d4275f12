import pytest

from fakes import AVERAGE_RESULT, FakeLLM, FakeWarehouse, desc
from sqlinsight.core.cancellation import CancellationToken
from sqlinsight.core.errors import ModelInvocationError
from sqlinsight.core.models import ErrorType, IntentLabel, SuccessEnvelope
from sqlinsight.services.query_service import OrchestrationPipeline
from sqlinsight.services.router import MessageRouter


def make_router(llm, warehouse, settings):
    pipeline = OrchestrationPipeline.from_clients(llm, warehouse, settings)
    return MessageRouter.from_clients(llm, pipeline, settings)


@pytest.mark.asyncio
async def test_data_question_runs_pipeline(settings, schema, history):
    llm = FakeLLM("ql", "SELECT AVG(temp) AS avg_temp FROM scada.readings", "Average is 21.37.")
    warehouse = FakeWarehouse([desc("FINISHED", has_result_set=True)], result=AVERAGE_RESULT)

    response = await make_router(llm, warehouse, settings).route(
        "average temperature last 30 days", schema, history
    )

    assert response.intent is IntentLabel.QL
    assert isinstance(response.envelope, SuccessEnvelope)
    assert response.envelope.result.records == [[21.37]]
    assert len(warehouse.submitted) == 1


@pytest.mark.asyncio
async def test_draft_request_returns_sql_without_executing(settings, schema, history):
    llm = FakeLLM("redshift", "SELECT * FROM scada.readings ORDER BY ts DESC LIMIT 10")
    warehouse = FakeWarehouse()

    response = await make_router(llm, warehouse, settings).route(
        "generate a query with the last 10 rows of scada", schema, history
    )

    assert response.intent is IntentLabel.REDSHIFT
    assert response.sql == "SELECT * FROM scada.readings ORDER BY ts DESC LIMIT 10"
    assert response.envelope is None
    assert warehouse.submitted == []
    assert warehouse.describe_calls == 0


@pytest.mark.asyncio
async def test_chat_message_gets_content(settings, schema, history):
    llm = FakeLLM("chat", "We discussed temperature data.")

    response = await make_router(llm, FakeWarehouse(), settings).route("summarize", schema, history)

    assert response.intent is IntentLabel.CHAT
    assert response.content == "We discussed temperature data."


@pytest.mark.asyncio
async def test_missing_information_gets_clarification(settings, schema):
    llm = FakeLLM("missing", '{"missingInfo": "time range", "questions": ["Which period?"]}')

    response = await make_router(llm, FakeWarehouse(), settings).route("how did it do", schema, [])

    assert response.intent is IntentLabel.MISSING
    assert response.clarification.questions == ["Which period?"]


@pytest.mark.asyncio
async def test_unknown_label_is_classification_error(settings, schema):
    llm = FakeLLM("tables")
    warehouse = FakeWarehouse()

    response = await make_router(llm, warehouse, settings).route("show me stuff", schema, [])

    assert response.intent is None
    assert response.error_type is ErrorType.CLASSIFICATION_ERROR
    assert len(llm.prompts) == 1
    assert warehouse.submitted == []


@pytest.mark.asyncio
async def test_handler_failure_is_generation_error(settings, schema):
    llm = FakeLLM("chat", ModelInvocationError("overloaded"))

    response = await make_router(llm, FakeWarehouse(), settings).route("hello", schema, [])

    assert response.intent is IntentLabel.CHAT
    assert response.error_type is ErrorType.GENERATION_ERROR
    assert "overloaded" in response.error


@pytest.mark.asyncio
async def test_cancelled_before_classification(settings, schema):
    token = CancellationToken()
    token.cancel()
    llm = FakeLLM("chat")

    response = await make_router(llm, FakeWarehouse(), settings).route("hello", schema, [], token)

    assert response.error_type is ErrorType.CANCELLED
    assert llm.prompts == []
