from sqlinsight.core.config import Settings


def test_polling_defaults():
    settings = Settings(OPENAI_API_KEY="test-key")

    assert settings.POLL_INTERVAL_SECONDS == 5.0
    assert settings.POLL_MAX_ATTEMPTS == 60
    assert settings.PIPELINE_TIMEOUT_SECONDS is None


def test_only_openai_is_configurable():
    assert "LLM_PROVIDER" not in Settings.model_fields
    assert "OPENAI_API_KEY" in Settings.model_fields
