import pytest
from loguru import logger
from sqlinsight.llm.validator import SQLValidator

def test_validator_accepts_safe_select():
    validator = SQLValidator()

    sql = "SELECT AVG(temp) AS avg_temp FROM scada.readings WHERE ts >= DATEADD(day, -30, GETDATE());"
    is_valid, error = validator.validate(sql)

    assert is_valid is True
    assert error is None

def test_validator_accepts_cte():
    validator = SQLValidator()

    sql = "WITH recent AS (SELECT * FROM scada.readings LIMIT 10) SELECT AVG(temp) FROM recent"
    is_valid, error = validator.validate(sql)

    assert is_valid is True

def test_validator_ignores_keywords_in_string_literals():
    validator = SQLValidator()

    sql = "SELECT ts FROM scada.events WHERE note = 'DROP TABLE requested'"
    is_valid, error = validator.validate(sql)

    assert is_valid is True

def test_validator_rejects_insert():
    validator = SQLValidator()

    sql = "INSERT INTO scada.readings (temp) VALUES (1);"
    is_valid, error = validator.validate(sql)

    assert is_valid is False
    assert "INSERT" in error

def test_validator_rejects_delete():
    validator = SQLValidator()

    sql = "DELETE FROM scada.readings WHERE temp > 100;"
    is_valid, error = validator.validate(sql)

    assert is_valid is False
    assert "DELETE" in error

def test_validator_rejects_drop():
    validator = SQLValidator()

    sql = "DROP TABLE scada.readings;"
    is_valid, error = validator.validate(sql)

    assert is_valid is False
    assert "DROP" in error

def test_validator_rejects_multiple_statements():
    validator = SQLValidator()

    sql = "SELECT * FROM scada.readings; SELECT * FROM users;"
    is_valid, error = validator.validate(sql)

    assert is_valid is False
    assert "Multiple" in error

@pytest.mark.parametrize("sql", ["", "   ", "\n"])
def test_validator_rejects_empty(sql):
    is_valid, error = SQLValidator().validate(sql)

    assert is_valid is False
    assert "empty" in error

def test_validator_allows_trailing_semicolon():
    is_valid, error = SQLValidator().validate("SELECT 1;")

    assert is_valid is True

def test_validator_logs_rejection_reason():
    messages = []
    sink_id = logger.add(messages.append, level="WARNING")
    try:
        SQLValidator().validate("DROP TABLE scada.readings;")
    finally:
        logger.remove(sink_id)

    assert any("Dangerous keyword detected: DROP" in message for message in messages)
