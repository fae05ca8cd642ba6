import asyncio
import pytest
from pymongo import ReadPreference

from aggchain.mongo.aggregate import Aggregate, AggregateCursor
from aggchain.mongo.model import Model
from testutils import MockAsyncCollection


@pytest.fixture
def model(movies_collection):
    return Model("Movie", MockAsyncCollection(movies_collection))


def test_stage_methods_build_pipeline():
    aggregate = (
        Aggregate()
        .match({"genre": "crime"})
        .add_fields({"decade": {"$subtract": ["$year", {"$mod": ["$year", 10]}]}})
        .sort("-rate title")
        .skip(1)
        .limit(2)
        .project("title -_id")
    )
    assert aggregate.pipeline() == [
        {"$match": {"genre": "crime"}},
        {"$addFields": {"decade": {"$subtract": ["$year", {"$mod": ["$year", 10]}]}}},
        {"$sort": {"rate": -1, "title": 1}},
        {"$skip": 1},
        {"$limit": 2},
        {"$project": {"title": 1, "_id": 0}},
    ]


def test_field_path_stages():
    aggregate = Aggregate().unwind("tags", "$actors").sort_by_count("genre").replace_root("details")
    assert aggregate.pipeline() == [
        {"$unwind": "$tags"},
        {"$unwind": "$actors"},
        {"$sortByCount": "$genre"},
        {"$replaceRoot": {"newRoot": "$details"}},
    ]


def test_other_stages():
    aggregate = (
        Aggregate()
        .near({"near": [0, 0], "distanceField": "dist"})
        .group({"_id": "$genre", "n": {"$sum": 1}})
        .lookup({"from": "actors", "localField": "cast", "foreignField": "_id", "as": "cast"})
        .graph_lookup({"from": "people", "startWith": "$boss", "connectFromField": "boss", "connectToField": "name", "as": "chain"})
        .facet({"byGenre": [{"$sortByCount": "$genre"}]})
        .sample(3)
        .search({"text": {"query": "heat", "path": "title"}})
        .redact({"$eq": ["$level", 1]}, "$$DESCEND", "$$PRUNE")
        .count("total")
    )
    stages = [next(iter(stage)) for stage in aggregate.pipeline()]
    assert stages == ["$geoNear", "$group", "$lookup", "$graphLookup", "$facet", "$sample", "$search", "$redact", "$count"]
    assert aggregate.pipeline()[5] == {"$sample": {"size": 3}}
    assert aggregate.pipeline()[7] == {"$redact": {"$cond": {"if": {"$eq": ["$level", 1]}, "then": "$$DESCEND", "else": "$$PRUNE"}}}


def test_append_validates_stage_shape():
    with pytest.raises(TypeError):
        Aggregate().append({"$match": {}, "$limit": 1})
    assert Aggregate().append({"$match": {}}, {"$limit": 1}).pipeline() == [{"$match": {}}, {"$limit": 1}]


def test_pipeline_returns_copy():
    aggregate = Aggregate().match({"a": 1})
    aggregate.pipeline()[0]["$match"]["a"] = 2
    assert aggregate.pipeline() == [{"$match": {"a": 1}}]


def test_option_verbs_do_not_touch_pipeline():
    aggregate = (
        Aggregate()
        .allow_disk_use()
        .collation({"locale": "en"})
        .hint({"rate": 1})
        .option({"maxTimeMS": 500})
        .add_cursor_flag("comment", "report")
    )
    assert aggregate.pipeline() == []
    assert aggregate.options == {
        "allowDiskUse": True,
        "collation": {"locale": "en"},
        "hint": {"rate": 1},
        "maxTimeMS": 500,
        "comment": "report",
    }


def test_read_preference_names():
    with pytest.raises(ValueError):
        Aggregate().read("fastest")


def test_model_accessor():
    aggregate = Aggregate()
    assert aggregate.model() is None
    marker = object()
    assert aggregate.model(marker) is marker
    assert aggregate.model() is marker


def test_command_arguments_require_model():
    with pytest.raises(ValueError):
        Aggregate().command_arguments()


def test_cursor_drains_collection(model):
    cursor = model.aggregate().match({"genre": "crime"}).sort("year").project("title -_id").cursor({"batchSize": 2})
    assert isinstance(cursor, AggregateCursor)

    async def run():
        docs = [doc async for doc in cursor]
        await cursor.close()
        await cursor.close()
        return docs

    assert asyncio.run(run()) == [{"title": "Thief"}, {"title": "Heat"}, {"title": "Ronin"}]
    pipeline, kwargs = model.collection.aggregate_calls[0]
    assert kwargs == {"batchSize": 2}
    assert model.collection.cursors[0].closed


def test_cursor_passes_options_and_read_settings(model):
    session = object()
    aggregate = model.aggregate().allow_disk_use().read("secondaryPreferred").read_concern("majority").session(session)

    async def run():
        async with aggregate.cursor() as cursor:
            return await cursor.next()

    asyncio.run(run())
    _, kwargs = model.collection.aggregate_calls[0]
    assert kwargs == {"allowDiskUse": True, "session": session}
    settings = model.collection.with_options_calls[0]
    assert settings["read_preference"] == ReadPreference.SECONDARY_PREFERRED
    assert settings["read_concern"].level == "majority"


def test_closed_cursor_yields_nothing(model):
    async def run():
        cursor = model.aggregate().cursor()
        await cursor.close()
        return await cursor.next()

    assert asyncio.run(run()) is None
    assert model.collection.aggregate_calls == []
