"""AWS client bundle (S3, SQS, SNS, DynamoDB) built on aioboto3.

Clients are opened once by the hosting process and closed at shutdown:

    async with open_aws_clients(settings) as aws:
        table = await aws.dynamodb.Table("GameRatings")

Credentials follow the usual boto chain (env vars, shared config, instance role).
"""

from collections.abc import AsyncGenerator
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
import logging
from typing import Any

import aioboto3

from gamecatalog.settings import Settings

logger = logging.getLogger("uvicorn.error")


@dataclass
class AwsClients:
    """Open aioboto3 clients/resources for one process."""

    s3: Any
    sqs: Any
    sns: Any
    dynamodb: Any  # service resource


@asynccontextmanager
async def open_aws_clients(settings: Settings) -> AsyncGenerator[AwsClients, None]:
    """Open all AWS clients and close them when the context exits."""
    session = aioboto3.Session(region_name=settings.aws_region)
    endpoint_url = settings.aws_endpoint_url or None

    if not settings.s3_bucket:
        logger.warning("AWS_S3_BUCKET is not configured")
    if not settings.sns_topic_arn:
        logger.warning("SNS_TOPIC_ARN is not configured")
    if not settings.sqs_queue_url:
        logger.warning("SQS_QUEUE_URL is not configured")

    async with AsyncExitStack() as stack:
        s3 = await stack.enter_async_context(session.client("s3", endpoint_url=endpoint_url))
        sqs = await stack.enter_async_context(session.client("sqs", endpoint_url=endpoint_url))
        sns = await stack.enter_async_context(session.client("sns", endpoint_url=endpoint_url))
        dynamodb = await stack.enter_async_context(
            session.resource("dynamodb", endpoint_url=endpoint_url)
        )
        logger.info(
            f"AWS clients ready: region={settings.aws_region} bucket={settings.s3_bucket or '-'} "
            f"ratings={settings.ddb_table_ratings} reviews={settings.ddb_table_reviews} "
            f"audit={settings.ddb_table_audit} sns={bool(settings.sns_topic_arn)} "
            f"sqs={bool(settings.sqs_queue_url)}"
        )
        yield AwsClients(s3=s3, sqs=sqs, sns=sns, dynamodb=dynamodb)
