import asyncio
from typing import Any, Dict, Optional

import boto3

from sqlinsight.core.config import Settings
from sqlinsight.core.logging import get_logger
from sqlinsight.warehouse.base import RawResult, StatementDescription

logger = get_logger(__name__)


class RedshiftDataWarehouse:
    """Warehouse client backed by the Redshift Data API.

    boto3 is synchronous, so every call runs in a worker thread and never
    blocks the event loop.
    """

    name = "redshift-data"

    def __init__(self, settings: Settings, client: Optional[Any] = None):
        self.database = settings.REDSHIFT_DATABASE
        self.workgroup_name = settings.REDSHIFT_WORKGROUP_NAME
        self.cluster_identifier = settings.REDSHIFT_CLUSTER_IDENTIFIER
        self.secret_arn = settings.REDSHIFT_SECRET_ARN

        if not (self.workgroup_name or self.cluster_identifier):
            raise ValueError("Set REDSHIFT_WORKGROUP_NAME or REDSHIFT_CLUSTER_IDENTIFIER")

        self.client = client or boto3.client("redshift-data", region_name=settings.AWS_REGION)

    def _statement_params(self, sql: str) -> Dict[str, Any]:
        params: Dict[str, Any] = {"Database": self.database, "Sql": sql, "WithEvent": True}
        if self.workgroup_name:
            params["WorkgroupName"] = self.workgroup_name
        else:
            params["ClusterIdentifier"] = self.cluster_identifier
        if self.secret_arn:
            params["SecretArn"] = self.secret_arn
        return params

    async def submit(self, sql: str) -> Optional[str]:
        params = self._statement_params(sql)
        logger.debug(
            f"ExecuteStatement database={self.database} "
            f"target={self.workgroup_name or self.cluster_identifier}"
        )
        response = await asyncio.to_thread(self.client.execute_statement, **params)
        return response.get("Id")

    async def describe(self, execution_id: str) -> StatementDescription:
        response = await asyncio.to_thread(self.client.describe_statement, Id=execution_id)
        return StatementDescription(
            status=response.get("Status", ""),
            has_result_set=bool(response.get("HasResultSet")),
            error=response.get("Error"),
        )

    async def fetch(self, execution_id: str) -> RawResult:
        # Single page only; NextToken is not followed.
        response = await asyncio.to_thread(self.client.get_statement_result, Id=execution_id)
        if response.get("NextToken"):
            logger.warning(f"Execution {execution_id} has more result pages; only the first is used")
        return RawResult(
            columns=response.get("ColumnMetadata") or [],
            rows=response.get("Records") or [],
            total_rows=response.get("TotalNumRows"),
        )

    async def cancel(self, execution_id: str) -> None:
        await asyncio.to_thread(self.client.cancel_statement, Id=execution_id)
