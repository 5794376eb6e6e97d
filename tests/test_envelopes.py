import json

import pytest

from gamecatalog.services.envelopes import (
    EnvelopeShape,
    ParsedEvent,
    UnrecognizedEnvelope,
    parse_envelope,
    unwrap_message,
)

RAW = {
    "eventType": "FILE_UPLOADED",
    "data": {"s3Key": "game-images/cover.png", "fileName": "cover.png"},
    "timestamp": "2024-01-01T00:00:00.000Z",
}


def _sns(inner: dict) -> str:
    return json.dumps(
        {
            "Type": "Notification",
            "MessageId": "abc",
            "TopicArn": "arn:aws:sns:us-east-1:123:games",
            "Subject": "Game Event: FILE_UPLOADED",
            "Message": json.dumps(inner),
        }
    )


def _s3_record(key: str, event_name: str = "ObjectCreated:Put") -> dict:
    return {
        "Records": [
            {
                "eventSource": "aws:s3",
                "eventName": event_name,
                "eventTime": "2024-01-01T00:00:00.000Z",
                "s3": {"bucket": {"name": "games-bucket"}, "object": {"key": key, "size": 1024}},
            }
        ]
    }


def test_raw_event():
    event = parse_envelope(json.dumps(RAW))

    assert isinstance(event, ParsedEvent)
    assert event.shape is EnvelopeShape.RAW
    assert event.event_type == "FILE_UPLOADED"
    assert event.key == "game-images/cover.png"
    assert event.file_name == "cover.png"
    assert event.timestamp == "2024-01-01T00:00:00.000Z"


def test_all_three_shapes_resolve_to_the_same_event():
    raw = unwrap_message(json.dumps(RAW))
    wrapped = unwrap_message(_sns(RAW))
    storage = unwrap_message(json.dumps(_s3_record("game-images/cover.png")))

    assert {raw.shape, wrapped.shape, storage.shape} == set(EnvelopeShape)
    for event in (raw, wrapped, storage):
        assert event.event_type == "FILE_UPLOADED"
        assert event.key == "game-images/cover.png"
        assert event.file_name == "cover.png"


def test_storage_notification_key_is_url_decoded():
    event = unwrap_message(json.dumps(_s3_record("game-images/my+cover%28final%29.png")))

    assert event.key == "game-images/my cover(final).png"
    assert event.file_name == "my cover(final).png"
    assert event.data["bucket"] == "games-bucket"
    assert event.data["size"] == 1024


def test_storage_removal_becomes_file_deleted():
    event = unwrap_message(json.dumps(_s3_record("game-images/a.png", "ObjectRemoved:Delete")))

    assert event.event_type == "FILE_DELETED"


def test_storage_notification_inside_sns():
    event = unwrap_message(_sns(_s3_record("game-images/a.png")))

    assert event.shape is EnvelopeShape.STORAGE
    assert event.event_type == "FILE_UPLOADED"
    assert event.key == "game-images/a.png"


def test_storage_test_event():
    body = json.dumps({"Service": "Amazon S3", "Event": "s3:TestEvent", "Bucket": "games-bucket"})

    event = unwrap_message(body)

    assert event.event_type == "STORAGE_TEST_EVENT"
    assert event.data == {"bucket": "games-bucket"}


@pytest.mark.parametrize(
    "data,top_level,expected",
    [
        ({"s3Key": "from-data"}, {"s3Key": "top"}, "top"),
        ({"s3Key": "from-data", "key": "plain"}, {}, "from-data"),
        ({"key": "plain"}, {}, "plain"),
        ({"gameId": "g1"}, {}, None),
    ],
)
def test_event_key_resolution_order(data, top_level, expected):
    body = json.dumps({"eventType": "X", "data": data, **top_level})

    assert unwrap_message(body).key == expected


def test_game_deleted_event_keeps_its_payload():
    event = unwrap_message(json.dumps({"eventType": "GAME_DELETED", "data": {"gameId": "g1"}}))

    assert event.event_type == "GAME_DELETED"
    assert event.data == {"gameId": "g1"}
    assert event.key is None


@pytest.mark.parametrize(
    "body",
    [
        "not json at all",
        "[1, 2, 3]",
        json.dumps({"hello": "world"}),
        json.dumps({"Type": "Notification", "Message": "{broken"}),
        json.dumps({"Records": [{"s3": {}}]}),
        json.dumps({"eventType": ""}),
    ],
)
def test_unrecognized_bodies_become_parse_errors(body):
    assert isinstance(parse_envelope(body), UnrecognizedEnvelope)

    event = unwrap_message(body)
    assert event.event_type == "PARSE_ERROR"
    assert event.data["reason"]
    assert event.data["body"] == body[:500]


def test_parse_error_body_preview_is_truncated():
    body = json.dumps({"junk": "x" * 2000})

    assert len(unwrap_message(body).data["body"]) == 500


@pytest.mark.parametrize(
    "body",
    [
        "[" * 200_000,
        json.dumps({"Type": "Notification", "Message": "[" * 200_000}),
        json.dumps({"Type": "Notification", "Message": '{"a":' * 100_000}),
    ],
)
def test_deeply_nested_bodies_become_parse_errors(body):
    assert isinstance(parse_envelope(body), UnrecognizedEnvelope)

    event = unwrap_message(body)
    assert event.event_type == "PARSE_ERROR"
    assert len(event.data["body"]) == 500
