from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sqlinsight.api import endpoints
from sqlinsight.core.config import Settings, settings as default_settings
from sqlinsight.core.logging import get_logger
from sqlinsight.llm.provider import LLMProvider, ModelClient
from sqlinsight.services.query_service import OrchestrationPipeline
from sqlinsight.services.router import MessageRouter
from sqlinsight.services.schema_loader import load_schema_metadata
from sqlinsight.warehouse.base import WarehouseClient
from sqlinsight.warehouse.redshift import RedshiftDataWarehouse
from sqlinsight.warehouse.sqlalchemy_warehouse import SQLAlchemyWarehouse

logger = get_logger(__name__)


def build_warehouse(settings: Settings) -> WarehouseClient:
    if settings.WAREHOUSE_BACKEND == "redshift-data":
        return RedshiftDataWarehouse(settings)
    if settings.WAREHOUSE_BACKEND == "sqlalchemy":
        return SQLAlchemyWarehouse.from_url(settings.WAREHOUSE_URL)
    raise ValueError(f"Unknown WAREHOUSE_BACKEND: {settings.WAREHOUSE_BACKEND}")


def create_app(
    settings: Optional[Settings] = None,
    llm: Optional[ModelClient] = None,
    warehouse: Optional[WarehouseClient] = None,
    schema_metadata: Optional[Any] = None,
) -> FastAPI:
    """Build the API. Clients are created once at startup unless injected."""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting SQL Insight API...")
        app.state.llm = llm or LLMProvider(settings)
        app.state.warehouse = warehouse or build_warehouse(settings)
        app.state.schema_metadata = (
            schema_metadata if schema_metadata is not None
            else load_schema_metadata(settings.SCHEMA_METADATA_PATH)
        )
        app.state.pipeline = OrchestrationPipeline.from_clients(
            app.state.llm, app.state.warehouse, settings
        )
        app.state.router = MessageRouter.from_clients(app.state.llm, app.state.pipeline, settings)
        logger.info(f"Using model {app.state.llm.model_name} and warehouse {app.state.warehouse.name}")

        yield

        logger.info("Shutting down SQL Insight API...")
        dispose = getattr(app.state.warehouse, "dispose", None)
        if dispose is not None:
            await dispose()

    app = FastAPI(
        title="SQL Insight",
        description="Natural-language questions answered from the analytical warehouse",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(','),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(endpoints.router)

    @app.get("/")
    async def root():
        return {
            "service": "SQL Insight",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/api/v1/health",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8001)
