"""Service container: every store and service one process needs, wired once.

Owned by the hosting process (FastAPI lifespan or a script):

    async with open_container() as container:
        await container.worker.run(stop_event)

Everything is closed when the context exits.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
import logging

from gamecatalog.services.audit import AuditLog
from gamecatalog.services.counters import CounterReconciler, SqlGameCounters
from gamecatalog.services.events import EventPublisher
from gamecatalog.services.images import ImageResizer
from gamecatalog.services.ratings import RatingStore
from gamecatalog.services.reviews import ReviewStore
from gamecatalog.services.worker import QueueWorker
from gamecatalog.settings import Settings, get_settings
from gamecatalog.stores.aws import open_aws_clients
from gamecatalog.stores.dynamo import DynamoTable
from gamecatalog.stores.objects import ObjectStore
from gamecatalog.stores.postgres import Database
from gamecatalog.stores.queue import MessageQueue
from gamecatalog.stores.redis import RedisStore

logger = logging.getLogger("uvicorn.error")


@dataclass
class ServiceContainer:
    settings: Settings
    database: Database
    redis: RedisStore | None
    objects: ObjectStore
    events: EventPublisher
    ratings: RatingStore
    reviews: ReviewStore
    counters: SqlGameCounters
    reconciler: CounterReconciler
    resizer: ImageResizer
    audit: AuditLog
    worker: QueueWorker


async def _table(dynamodb, name: str) -> DynamoTable:
    return DynamoTable(await dynamodb.Table(name), name)


@asynccontextmanager
async def open_container(settings: Settings | None = None) -> AsyncGenerator[ServiceContainer, None]:
    """Build the container and tear it down on exit.

    Postgres and Redis failures at startup are logged, not raised: Redis is
    optional (locks and URL cache degrade), Postgres is retried per request.
    """
    settings = settings or get_settings()

    database = Database.from_settings(settings)
    try:
        await database.ping()
        logger.info("Postgres connected")
    except Exception:
        logger.exception("Postgres init failed")

    redis_store: RedisStore | None = None
    try:
        redis_store = await RedisStore.connect(settings)
    except Exception:
        logger.exception("Redis init failed, continuing without cache and locks")

    try:
        async with open_aws_clients(settings) as aws:
            ratings_table = await _table(aws.dynamodb, settings.ddb_table_ratings)
            reviews_table = await _table(aws.dynamodb, settings.ddb_table_reviews)
            audit_table = await _table(aws.dynamodb, settings.ddb_table_audit)

            queue = MessageQueue(aws.sqs, settings.sqs_queue_url)
            objects = ObjectStore(aws.s3, settings, cache=redis_store)
            ratings = RatingStore(ratings_table)
            reviews = ReviewStore(reviews_table)
            counters = SqlGameCounters(database)
            resizer = ImageResizer(objects, settings)
            audit = AuditLog(
                audit_table,
                ttl_days=settings.audit_ttl_days,
                crud_enabled=settings.is_production,
            )

            yield ServiceContainer(
                settings=settings,
                database=database,
                redis=redis_store,
                objects=objects,
                events=EventPublisher(settings, sns=aws.sns, queue=queue),
                ratings=ratings,
                reviews=reviews,
                counters=counters,
                reconciler=CounterReconciler(
                    ratings,
                    counters,
                    locks=redis_store,
                    lock_ttl=settings.counter_sweep_lock_seconds,
                    audit=audit,
                ),
                resizer=resizer,
                audit=audit,
                worker=QueueWorker(queue, settings, resizer, ratings, reviews, audit),
            )
    finally:
        if redis_store is not None:
            await redis_store.close()
        await database.close()
