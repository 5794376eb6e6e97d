"""Data stores and gateways.

Stores handle:
- PostgreSQL: DB session, ORM operations (game counters)
- Redis: caching, locks, TTL policies
- AWS: DynamoDB tables, S3 objects, SQS queue, SNS/SQS clients bundle

No business logic in stores - that belongs in services.
"""
