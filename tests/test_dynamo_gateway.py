"""DynamoTable against a recording stand-in for the aioboto3 Table resource."""

import pytest

from gamecatalog.stores.dynamo import DynamoTable, delete_in_batches, iter_query_pages


class _BatchWriter:
    def __init__(self, resource: "RecordingTableResource"):
        self._resource = resource
        self._keys: list[dict] = []

    async def __aenter__(self) -> "_BatchWriter":
        return self

    async def __aexit__(self, *exc: object) -> None:
        self._resource.flushed.append(list(self._keys))

    async def delete_item(self, Key: dict) -> None:
        self._keys.append(Key)


class RecordingTableResource:
    def __init__(self, pages: list[dict] | None = None):
        self.pages = list(pages or [])
        self.query_params: list[dict] = []
        self.flushed: list[list[dict]] = []
        self.calls: list[tuple[str, dict]] = []

    async def put_item(self, **kwargs):
        self.calls.append(("put_item", kwargs))

    async def get_item(self, **kwargs):
        self.calls.append(("get_item", kwargs))
        return {}

    async def delete_item(self, **kwargs):
        self.calls.append(("delete_item", kwargs))

    async def query(self, **kwargs):
        self.query_params.append(kwargs)
        return self.pages.pop(0) if self.pages else {"Items": []}

    def batch_writer(self):
        return _BatchWriter(self)


@pytest.mark.asyncio
async def test_point_operations_pass_keys_through():
    resource = RecordingTableResource()
    table = DynamoTable(resource, "GameRatings")

    await table.put_item({"PK": "USER#u", "SK": "GAME#g"})
    missing = await table.get_item({"PK": "USER#u", "SK": "GAME#g"})
    await table.delete_item({"PK": "USER#u", "SK": "GAME#g"})

    assert missing is None
    assert resource.calls == [
        ("put_item", {"Item": {"PK": "USER#u", "SK": "GAME#g"}}),
        ("get_item", {"Key": {"PK": "USER#u", "SK": "GAME#g"}}),
        ("delete_item", {"Key": {"PK": "USER#u", "SK": "GAME#g"}}),
    ]


@pytest.mark.asyncio
async def test_query_builds_index_and_paging_params():
    resource = RecordingTableResource([{"Items": [{"a": 1}], "LastEvaluatedKey": {"PK": "x"}}])
    table = DynamoTable(resource, "GameReviews")

    page = await table.query(
        partition_attr="GSI1PK",
        partition_value="USER#u1",
        index_name="GSI1",
        limit=5,
        forward=False,
        start_key={"PK": "prev"},
    )

    params = resource.query_params[0]
    assert params["IndexName"] == "GSI1"
    assert params["Limit"] == 5
    assert params["ScanIndexForward"] is False
    assert params["ExclusiveStartKey"] == {"PK": "prev"}
    assert "KeyConditionExpression" in params
    assert page.items == [{"a": 1}]
    assert page.last_key == {"PK": "x"}


@pytest.mark.asyncio
async def test_plain_query_omits_optional_params():
    resource = RecordingTableResource()

    await DynamoTable(resource, "GameReviews").query(partition_attr="PK", partition_value="GAME#g1")

    assert set(resource.query_params[0]) == {"KeyConditionExpression", "ScanIndexForward"}


@pytest.mark.asyncio
async def test_iter_query_pages_follows_last_evaluated_key():
    resource = RecordingTableResource(
        [
            {"Items": [{"n": 1}, {"n": 2}], "LastEvaluatedKey": {"PK": "k2"}},
            {"Items": [], "LastEvaluatedKey": {"PK": "k2b"}},
            {"Items": [{"n": 3}]},
        ]
    )
    table = DynamoTable(resource, "GameRatings")

    pages = [items async for items in iter_query_pages(table, partition_attr="PK", partition_value="p")]

    assert pages == [[{"n": 1}, {"n": 2}], [{"n": 3}]]
    assert [p.get("ExclusiveStartKey") for p in resource.query_params] == [None, {"PK": "k2"}, {"PK": "k2b"}]


@pytest.mark.asyncio
async def test_batch_delete_limits():
    resource = RecordingTableResource()
    table = DynamoTable(resource, "GameRatings")

    with pytest.raises(ValueError):
        await table.batch_delete([{"PK": str(i), "SK": "s"} for i in range(26)])

    await table.batch_delete([])
    assert resource.flushed == []


@pytest.mark.asyncio
async def test_delete_in_batches_chunks_by_25():
    resource = RecordingTableResource()
    table = DynamoTable(resource, "GameRatings")
    keys = [{"PK": f"USER#{i}", "SK": "GAME#g"} for i in range(60)]

    deleted = await delete_in_batches(table, keys)

    assert deleted == 60
    assert [len(batch) for batch in resource.flushed] == [25, 25, 10]
