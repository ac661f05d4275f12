import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage

from sqlinsight.core.cancellation import CancellationToken
from sqlinsight.core.errors import ModelInvocationError, QueryCancelledError
from sqlinsight.llm.provider import LLMProvider, collect_text, text_parts


def test_text_parts_skips_non_text():
    content = [
        {"type": "text", "text": "SELECT "},
        {"type": "tool_use", "id": "t1"},
        "1",
        {"type": "text", "text": ""},
    ]
    assert list(text_parts(content)) == ["SELECT ", "1"]
    assert list(text_parts("abc")) == ["abc"]
    assert list(text_parts("")) == []
    assert list(text_parts(None)) == []


@pytest.mark.asyncio
async def test_provider_streams_chat_model_text(settings):
    chat = GenericFakeChatModel(messages=iter([AIMessage(content="SELECT 1 FROM scada.readings")]))
    provider = LLMProvider(settings, chat=chat)

    text = await collect_text(provider, "prompt", 100)

    assert text == "SELECT 1 FROM scada.readings"
    assert provider.model_name == settings.DEFAULT_MODEL


class BrokenChat:
    async def astream(self, messages, **kwargs):
        yield AIMessage(content="SELECT ")
        raise ConnectionError("socket closed")


@pytest.mark.asyncio
async def test_transport_failure_is_model_invocation_error(settings):
    provider = LLMProvider(settings, chat=BrokenChat())

    with pytest.raises(ModelInvocationError) as exc:
        await collect_text(provider, "prompt", 100)
    assert "socket closed" in str(exc.value)


def test_missing_api_key_is_rejected(settings):
    with pytest.raises(ValueError):
        LLMProvider(settings.model_copy(update={"OPENAI_API_KEY": ""}))


@pytest.mark.asyncio
async def test_collect_text_checks_cancellation_first(settings):
    chat = GenericFakeChatModel(messages=iter([AIMessage(content="never read")]))
    token = CancellationToken()
    token.cancel("gone")

    with pytest.raises(QueryCancelledError):
        await collect_text(LLMProvider(settings, chat=chat), "prompt", 100, token)
