import sqlparse
from sqlparse import tokens as T
from sqlinsight.core.logging import get_logger
from typing import Tuple, Optional

logger = get_logger(__name__)


class SQLValidator:
    """Read-only guard for generated SQL before it reaches the warehouse"""

    DANGEROUS_KEYWORDS = {
        'INSERT', 'UPDATE', 'DELETE', 'DROP', 'ALTER', 'CREATE',
        'TRUNCATE', 'GRANT', 'REVOKE', 'EXEC', 'EXECUTE',
        'MERGE', 'CALL', 'LOCK', 'UNLOCK', 'COPY', 'UNLOAD', 'VACUUM'
    }

    def validate(self, sql: str) -> Tuple[bool, Optional[str]]:
        """Validate SQL query for safety

        Returns:
            Tuple[bool, Optional[str]]: (is_valid, error_message)
        """
        error = self._find_violation(sql)
        if error:
            logger.warning(f"SQL rejected: {error}")
            return False, error
        return True, None

    def _find_violation(self, sql: str) -> Optional[str]:
        if not sql or not sql.strip():
            return "SQL query is empty"

        statements = [s for s in sqlparse.split(sql) if s.strip().rstrip(';').strip()]
        if len(statements) != 1:
            return "Multiple SQL statements not allowed"

        parsed = sqlparse.parse(statements[0])[0]

        # Keyword tokens only, so string literals and identifiers never trip the check
        for token in parsed.flatten():
            if token.ttype in T.Keyword:
                word = token.normalized.upper()
                if word in self.DANGEROUS_KEYWORDS:
                    return f"Dangerous keyword detected: {word}"

        statement_type = parsed.get_type()
        if statement_type != 'SELECT':
            return f"Only SELECT queries are allowed (got {statement_type})"

        return None
