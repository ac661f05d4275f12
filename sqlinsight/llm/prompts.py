import json
from typing import Any, Optional, Sequence

from sqlinsight.core.models import ConversationTurn, ResultSet


def format_history(history: Sequence[ConversationTurn], window: Optional[int] = None) -> str:
    """Render turns as ``role: content`` lines, oldest first, keeping the last ``window``."""
    turns = list(history)
    if window is not None and window > 0:
        turns = turns[-window:]
    return "\n".join(f"{turn.role.value}: {turn.content}" for turn in turns)


def format_schema(schema: Any) -> str:
    return json.dumps(schema, indent=2, default=str)


def format_result_set(result: ResultSet, max_rows: int) -> tuple[str, int, bool]:
    """Serialize a result set for a prompt.

    Returns the JSON text, the number of rows embedded and whether rows were
    dropped to respect ``max_rows``.
    """
    records = result.records[:max_rows] if max_rows >= 0 else result.records
    truncated = len(records) < len(result.records)
    payload = {
        "columnMetadata": [
            {"name": column.name, "typeName": column.type_name}
            for column in result.column_metadata
        ],
        "records": records,
        "totalNumRows": result.total_row_count,
    }
    return json.dumps(payload, indent=2, default=str), len(records), truncated


INTENT_PROMPT = """Given the following chat history and the latest user message, determine if the user's request requires:
1. SQL query generation (return "ql") - if the user is asking for specific data or metrics, such as "what is the average temperature in the last 30 days"
2. Redshift SQL query drafting (return "redshift") - if the user is asking to write a Redshift SQL query or a query that builds a table, for example "generate a query with the last 10 rows of scada"
3. General chat/analysis (return "chat") - if the user wants a summary, analysis, or general conversation
4. Missing information (return "missing") - if information the agent needs to answer well is missing from both the chat history and the latest user message

Chat history:
{history}

Latest user message: "{message}"

Return only "ql", "redshift", "chat" or "missing" without any explanation."""


SQL_PROMPT = """Given this conversation history:
{history}

And based on the following database schema:
{schema}

Generate a Redshift SQL query for this question: "{message}"

Return only the SQL query without any explanation or additional text. Make sure to add the schema name to every table in the query."""


DRAFT_SQL_PROMPT = """Based on the following database schema:
{schema}

Generate a Redshift SQL query for this question: "{message}"

Return only the SQL query without any explanation or additional text. Make sure to add the schema name to every table in the query."""


INSIGHTS_PROMPT = """Given this conversation history:
{history}

Analyze the following SQL query results and provide insights:

Original question: {question}

Results:
{results}
{truncation_note}
Please provide:
1. A brief summary of the data
2. Key patterns or trends
3. Notable outliers or anomalies
4. Business implications or recommendations

Format the response in a clear, structured way."""


ANSWER_PROMPT = """Given this conversation history:
{history}

Answer the question with the following SQL query results:

Original question: {question}

Results:
{results}
{truncation_note}
Format the response in a clear way."""


CHAT_PROMPT = """Given this conversation context:
{history}

Respond to: "{message}"

Focus on providing clear insights and actionable recommendations if applicable."""


CLARIFY_PROMPT = """Given this conversation history:
{history}

And this database schema:
{schema}

For the latest user message: "{message}"

1. Identify what information is missing to properly handle this request
2. Suggest 1-2 follow-up questions to get the missing information
3. Format the response as JSON with fields:
   - missingInfo: what's missing
   - questions: array of follow-up questions

Return only the JSON."""
