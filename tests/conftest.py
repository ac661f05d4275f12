import pytest

from fakes import SCADA_SCHEMA, make_settings
from sqlinsight.core.models import ConversationTurn, Role


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def schema():
    return SCADA_SCHEMA


@pytest.fixture
def history():
    return [
        ConversationTurn(role=Role.USER, content="hi, what data do you have?"),
        ConversationTurn(role=Role.ASSISTANT, content="SCADA temperature readings."),
    ]
