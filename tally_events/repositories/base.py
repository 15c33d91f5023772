"""Base repository class with common DynamoDB operations."""

from typing import Any

import aioboto3
from botocore.exceptions import ClientError

from tally_events.config import Settings, settings
from tally_events.logging.config import get_logger

logger = get_logger(__name__)


def get_dynamodb_config(config: Settings | None = None) -> dict[str, Any]:
    """
    Build DynamoDB resource parameters for the current environment.

    In Lambda only the region is passed and the IAM role supplies
    credentials. Locally (LocalStack) the endpoint and any explicit
    credentials are added.

    Args:
        config: Settings to read from (defaults to the global settings)

    Returns:
        Keyword arguments for ``session.resource("dynamodb", ...)``
    """
    config = config or settings
    params: dict[str, Any] = {"region_name": config.aws_region}

    if config.dynamodb_endpoint_url:
        params["endpoint_url"] = config.dynamodb_endpoint_url

    # Temporary credentials need all three values together
    if config.aws_access_key_id:
        params["aws_access_key_id"] = config.aws_access_key_id
    if config.aws_secret_access_key:
        params["aws_secret_access_key"] = config.aws_secret_access_key
    if config.aws_session_token:
        params["aws_session_token"] = config.aws_session_token

    logger.debug(
        "DynamoDB config resolved",
        extra={"context": {"dynamodb_config_keys": sorted(params)}},
    )
    return params


class BaseRepository:
    """
    Base repository providing read access to a DynamoDB table.

    Each call opens a short-lived aioboto3 resource so the repository holds
    no connection state between requests.
    """

    def __init__(self, table_name: str, config: Settings | None = None) -> None:
        """
        Initialize repository with table name.

        Args:
            table_name: Name of the DynamoDB table
            config: Settings used to build the client configuration
        """
        self.table_name = table_name
        self.config = config or settings
        self.session = aioboto3.Session()

    async def get_item(
        self, key: dict[str, Any], projection: list[str] | None = None
    ) -> dict[str, Any] | None:
        """
        Get item from DynamoDB table by key.

        Args:
            key: Dictionary with partition key and optionally sort key
            projection: Attribute names to fetch (all when None)

        Returns:
            Item dictionary or None if not found

        Raises:
            ClientError: If DynamoDB rejects the request
        """
        params: dict[str, Any] = {"Key": key}
        if projection:
            params["ProjectionExpression"] = ", ".join(
                f"#a{i}" for i in range(len(projection))
            )
            params["ExpressionAttributeNames"] = {
                f"#a{i}": name for i, name in enumerate(projection)
            }

        async with self.session.resource(
            "dynamodb", **get_dynamodb_config(self.config)
        ) as dynamodb:
            table = await dynamodb.Table(self.table_name)
            try:
                response = await table.get_item(**params)
            except ClientError as exc:
                logger.error(
                    "DynamoDB get_item failed",
                    extra={
                        "context": {
                            "table": self.table_name,
                            "error_code": exc.response.get("Error", {}).get("Code"),
                        }
                    },
                )
                raise
            return response.get("Item")
