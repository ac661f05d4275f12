import os
from typing import Any, AsyncIterator, Iterator, Optional, Protocol

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from sqlinsight.core.cancellation import CancellationToken, check
from sqlinsight.core.config import Settings
from sqlinsight.core.errors import ModelInvocationError
from sqlinsight.core.logging import get_logger

logger = get_logger(__name__)


class ModelClient(Protocol):
    """Streaming text model: yields text deltas in arrival order, then ends."""

    model_name: str

    def stream(self, prompt: str, max_tokens: int) -> AsyncIterator[str]:
        ...


def text_parts(content: Any) -> Iterator[str]:
    """Yield the text deltas of one chunk's content, skipping non-text parts."""
    if isinstance(content, str):
        if content:
            yield content
    elif isinstance(content, list):
        # Anthropic-style chunks carry a list of typed parts (text, tool_use, ...)
        for part in content:
            if isinstance(part, str):
                if part:
                    yield part
            elif isinstance(part, dict) and part.get("type", "text") == "text" and part.get("text"):
                yield part["text"]


class LLMProvider:
    """LangChain chat model wrapper with token streaming."""

    def __init__(self, settings: Settings, chat: Optional[BaseChatModel] = None,
                 system_message: Optional[str] = None):
        self.model_name = settings.DEFAULT_MODEL
        self.system_message = (
            system_message
            or "You are a data analyst assistant for an analytical SQL warehouse."
        )

        if chat is None:
            if not settings.OPENAI_API_KEY:
                raise ValueError("No OpenAI API key found. Please set OPENAI_API_KEY in .env")
            os.environ.setdefault("OPENAI_API_KEY", settings.OPENAI_API_KEY)
            chat = ChatOpenAI(
                model=settings.DEFAULT_MODEL,
                temperature=settings.LLM_TEMPERATURE,
                streaming=True,
            )
        self.chat = chat

        logger.info(f"LLMProvider initialized with streaming using model: {self.model_name}")

    async def stream(self, prompt: str, max_tokens: int) -> AsyncIterator[str]:
        """Stream text deltas for ``prompt``. Transport failures raise ModelInvocationError."""
        messages = [
            SystemMessage(content=self.system_message),
            HumanMessage(content=prompt),
        ]
        try:
            async for chunk in self.chat.astream(messages, max_tokens=max_tokens):
                for piece in text_parts(getattr(chunk, "content", None)):
                    yield piece
        except Exception as e:
            logger.error(f"Streaming LLM error: {e}")
            raise ModelInvocationError(str(e)) from e


async def collect_text(client: ModelClient, prompt: str, max_tokens: int,
                       cancellation: Optional[CancellationToken] = None) -> str:
    """Drain the model stream and return the concatenated text (untrimmed).

    The stream is consumed to the end before anything is returned; callers
    never see a partial result.
    """
    check(cancellation)
    fragments = []
    async for fragment in client.stream(prompt, max_tokens):
        fragments.append(fragment)
    check(cancellation)
    return "".join(fragments)
