"""Fixtures shared by the test modules. Fakes live in tests/fakes.py."""

import pytest

from gamecatalog.settings import Settings
from tests.fakes import FakeS3, InMemoryTable


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="test",
        s3_bucket="test-bucket",
        aws_region="us-east-1",
        sqs_queue_url="https://sqs.test/queue",
        worker_poll_interval_seconds=0.0,
    )


@pytest.fixture
def table() -> InMemoryTable:
    return InMemoryTable()


@pytest.fixture
def s3() -> FakeS3:
    return FakeS3()
