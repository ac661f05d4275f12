import pytest

from fakes import FakeLLM
from sqlinsight.core.errors import ClassificationError, ModelInvocationError
from sqlinsight.core.models import ConversationTurn, IntentLabel, Role
from sqlinsight.llm.intent import IntentClassifier, parse_label


@pytest.mark.parametrize("raw, expected", [
    ("ql", IntentLabel.QL),
    ("  QL\n", IntentLabel.QL),
    ('"chat"', IntentLabel.CHAT),
    ("Redshift.", IntentLabel.REDSHIFT),
    ("missing", IntentLabel.MISSING),
])
def test_parse_label_normalizes(raw, expected):
    assert parse_label(raw) is expected


@pytest.mark.parametrize("raw", ["", "sql", "ql chat", "unknown"])
def test_parse_label_rejects_unknown_tokens(raw):
    with pytest.raises(ClassificationError) as exc:
        parse_label(raw)
    assert exc.value.raw_label == raw


@pytest.mark.asyncio
async def test_classify_average_temperature_question(settings, history):
    llm = FakeLLM(["q", "l"])
    classifier = IntentClassifier(llm, settings)

    intent = await classifier.classify("average temperature last 30 days", history)

    assert intent is IntentLabel.QL
    assert llm.max_tokens == [settings.CLASSIFIER_MAX_TOKENS]
    prompt = llm.prompts[0]
    assert 'Latest user message: "average temperature last 30 days"' in prompt
    assert "user: hi, what data do you have?" in prompt
    assert "assistant: SCADA temperature readings." in prompt


@pytest.mark.asyncio
async def test_classify_does_not_default_on_unknown_label(settings):
    classifier = IntentClassifier(FakeLLM("table"), settings)

    with pytest.raises(ClassificationError):
        await classifier.classify("show me stuff", [])


@pytest.mark.asyncio
async def test_classify_wraps_model_failure(settings):
    classifier = IntentClassifier(FakeLLM(ModelInvocationError("throttled")), settings)

    with pytest.raises(ClassificationError) as exc:
        await classifier.classify("hello", [])
    assert "throttled" in str(exc.value)


def test_prompt_history_is_bounded(settings):
    classifier = IntentClassifier(FakeLLM(), settings.model_copy(update={"HISTORY_WINDOW": 2}))
    turns = [ConversationTurn(role=Role.USER, content=f"turn {i}") for i in range(5)]

    prompt = classifier.build_prompt("next", turns)

    assert "turn 0" not in prompt
    assert "turn 3" in prompt and "turn 4" in prompt
