"""Scripted stand-ins for the model and warehouse clients."""
import re
from typing import Any, List, Optional, Sequence, Union

from sqlinsight.core.config import Settings
from sqlinsight.core.errors import ModelInvocationError
from sqlinsight.warehouse.base import RawResult, StatementDescription


def make_settings(**overrides) -> Settings:
    values = dict(
        OPENAI_API_KEY="test-key",
        POLL_INTERVAL_SECONDS=0.0,
        POLL_MAX_ATTEMPTS=60,
        PIPELINE_TIMEOUT_SECONDS=None,
        READ_ONLY_GUARD=True,
        INSIGHT_MODE="insights",
    )
    values.update(overrides)
    return Settings(**values)


Script = Union[str, List[Any], Exception]


class FakeLLM:
    """Replays one scripted response per ``stream`` call.

    A ``str`` response is streamed word by word, a list is streamed as given
    (an ``Exception`` inside the list is raised mid-stream) and a bare
    ``Exception`` fails the call before any text arrives.
    """

    model_name = "fake-model"

    def __init__(self, *responses: Script):
        self.responses: List[Script] = list(responses)
        self.prompts: List[str] = []
        self.max_tokens: List[int] = []

    async def stream(self, prompt: str, max_tokens: int):
        self.prompts.append(prompt)
        self.max_tokens.append(max_tokens)
        if not self.responses:
            raise ModelInvocationError("no scripted response left")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        chunks = item if isinstance(item, list) else re.split(r"(\s+)", item)
        for chunk in chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk


def desc(status: str, has_result_set: bool = False, error: Optional[str] = None) -> StatementDescription:
    return StatementDescription(status=status, has_result_set=has_result_set, error=error)


class FakeWarehouse:
    """Returns scripted status reads; the last status repeats once the script runs out."""

    name = "fake"

    def __init__(
        self,
        statuses: Sequence[StatementDescription] = (),
        result: Optional[RawResult] = None,
        execution_id: Optional[str] = "exec-1",
        submit_error: Optional[Exception] = None,
        describe_error: Optional[Exception] = None,
        fetch_error: Optional[Exception] = None,
        cancel_error: Optional[Exception] = None,
    ):
        self.statuses = list(statuses) or [desc("FINISHED")]
        self.result = result or RawResult()
        self.execution_id = execution_id
        self.submit_error = submit_error
        self.describe_error = describe_error
        self.fetch_error = fetch_error
        self.cancel_error = cancel_error
        self.submitted: List[str] = []
        self.describe_calls = 0
        self.fetch_calls = 0
        self.cancelled: List[str] = []

    async def submit(self, sql: str) -> Optional[str]:
        self.submitted.append(sql)
        if self.submit_error:
            raise self.submit_error
        return self.execution_id

    async def describe(self, execution_id: str) -> StatementDescription:
        self.describe_calls += 1
        if self.describe_error:
            raise self.describe_error
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]

    async def fetch(self, execution_id: str) -> RawResult:
        self.fetch_calls += 1
        if self.fetch_error:
            raise self.fetch_error
        return self.result

    async def cancel(self, execution_id: str) -> None:
        self.cancelled.append(execution_id)
        if self.cancel_error:
            raise self.cancel_error


SCADA_SCHEMA = {
    "schemas": [
        {
            "name": "scada",
            "tables": [
                {
                    "name": "readings",
                    "columns": [
                        {"name": "ts", "type": "timestamp"},
                        {"name": "temp", "type": "float"},
                    ],
                }
            ],
        }
    ]
}

AVERAGE_RESULT = RawResult(
    columns=[{"name": "avg_temp", "label": "avg_temp", "typeName": "float8"}],
    rows=[[{"doubleValue": 21.37}]],
    total_rows=1,
)
