from pydantic_settings import BaseSettings
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv
import os

ROOT_DIR = Path(__file__).parent.parent.parent
load_dotenv(ROOT_DIR / '.env')


class Settings(BaseSettings):
    # LLM
    OPENAI_API_KEY: str = os.getenv('OPENAI_API_KEY', '')
    DEFAULT_MODEL: str = os.getenv('DEFAULT_MODEL', 'gpt-4o-mini')
    LLM_TEMPERATURE: float = float(os.getenv('LLM_TEMPERATURE', '0.0'))

    # Prompt budgets (max output tokens per call)
    CLASSIFIER_MAX_TOKENS: int = 10
    GENERATOR_MAX_TOKENS: int = 1000
    INSIGHT_MAX_TOKENS: int = 2000
    CHAT_MAX_TOKENS: int = 2000
    CLARIFY_MAX_TOKENS: int = 1000

    # Prompt content
    HISTORY_WINDOW: int = 20
    INSIGHT_MAX_ROWS: int = 200
    INSIGHT_MODE: str = 'insights'
    READ_ONLY_GUARD: bool = True

    # Warehouse
    WAREHOUSE_BACKEND: str = os.getenv('WAREHOUSE_BACKEND', 'redshift-data')
    AWS_REGION: str = os.getenv('AWS_REGION', 'us-east-1')
    REDSHIFT_DATABASE: str = os.getenv('REDSHIFT_DATABASE', 'dev')
    REDSHIFT_WORKGROUP_NAME: Optional[str] = os.getenv('REDSHIFT_WORKGROUP_NAME')
    REDSHIFT_CLUSTER_IDENTIFIER: Optional[str] = os.getenv('REDSHIFT_CLUSTER_IDENTIFIER')
    REDSHIFT_SECRET_ARN: Optional[str] = os.getenv('REDSHIFT_SECRET_ARN')
    WAREHOUSE_URL: str = os.getenv('WAREHOUSE_URL', 'sqlite+aiosqlite:///:memory:')

    # Execution polling
    POLL_INTERVAL_SECONDS: float = 5.0
    POLL_MAX_ATTEMPTS: int = 60
    PIPELINE_TIMEOUT_SECONDS: Optional[float] = None

    # Schema document
    SCHEMA_METADATA_PATH: Optional[str] = os.getenv('SCHEMA_METADATA_PATH')

    # CORS
    CORS_ORIGINS: str = os.getenv('CORS_ORIGINS', '*')

    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')

    class Config:
        env_file = '.env'
        case_sensitive = True


settings = Settings()
