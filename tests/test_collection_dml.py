"""
Collection DML tests - add, update, upsert and delete against a recording client
"""
import json

import pytest

from aioseekdb import EmbeddingError, InvalidInputError, K, SqlError


class TestCollectionAdd:
    """collection.add()"""

    async def test_add_with_embeddings(self, client, collection):
        await collection.add(
            ids=["1", "2"],
            embeddings=[[1, 2, 3], [4, 5, 6]],
            metadatas=[{"tag": "A"}, {"tag": "B"}],
            documents=["hello", "world"],
        )

        inserts = client.statements_matching("INSERT INTO")
        assert len(inserts) == 2
        sql, params = inserts[0]
        assert sql == "INSERT INTO `c$v1$docs` (_id, document, metadata, embedding) VALUES (%s, %s, %s, %s)"
        assert params == ["1", "hello", json.dumps({"tag": "A"}), "[1.0,2.0,3.0]"]
        assert inserts[1][1][0] == "2"

    async def test_single_values_are_accepted(self, client, collection):
        await collection.add(ids="1", embeddings=[0.1, 0.2, 0.3], metadatas={"tag": "A"})

        (sql, params), = client.statements_matching("INSERT INTO")
        assert params == ["1", None, '{"tag": "A"}', "[0.1,0.2,0.3]"]

    async def test_embeddings_from_documents(self, client, collection, embedding_function):
        await collection.add(ids=["a", "b"], documents=["xy", "xyz"])

        assert embedding_function.calls == [["xy", "xyz"]]
        assert [params[3] for _, params in client.statements] == ["[2.0,0.0,1.0]", "[3.0,1.0,1.0]"]

    async def test_length_mismatch_issues_no_statement(self, client, collection):
        with pytest.raises(InvalidInputError):
            await collection.add(ids=["1", "2"], embeddings=[[1, 2, 3], [4, 5, 6]], documents=["only one"])
        assert client.statements == []

    async def test_dimension_mismatch_issues_no_statement(self, client, collection):
        with pytest.raises(InvalidInputError):
            await collection.add(ids=["1"], embeddings=[[1, 2]])
        assert client.statements == []

    async def test_documents_without_embedding_function(self, client, bare_collection):
        with pytest.raises(InvalidInputError):
            await bare_collection.add(ids=["1"], documents=["text"])
        assert client.statements == []

    async def test_empty_ids(self, client, collection):
        with pytest.raises(InvalidInputError):
            await collection.add(ids=[], embeddings=[])
        with pytest.raises(InvalidInputError):
            await collection.add(ids=["1", ""], embeddings=[[1, 2, 3], [1, 2, 3]])

    async def test_duplicate_ids(self, client, collection):
        with pytest.raises(InvalidInputError, match="Duplicate"):
            await collection.add(ids=["1", "1"], embeddings=[[1, 2, 3], [1, 2, 3]])
        assert client.statements == []

    async def test_metadata_must_be_dict(self, client, collection):
        with pytest.raises(InvalidInputError):
            await collection.add(ids=["1"], embeddings=[[1, 2, 3]], metadatas=["not a dict"])

    async def test_failing_embedding_function(self, client):
        from aioseekdb import Collection

        def broken(documents):
            raise RuntimeError("boom")

        coll = Collection(client, "docs", 3, "cosine", embedding_function=broken)
        with pytest.raises(EmbeddingError):
            await coll.add(ids=["1"], documents=["x"])
        assert client.statements == []

    async def test_embedding_function_dimension_mismatch(self, client):
        from aioseekdb import Collection

        coll = Collection(client, "docs", 3, "cosine", embedding_function=lambda docs: [[1.0, 2.0] for _ in docs])
        with pytest.raises(InvalidInputError, match="dimension 2, expected 3"):
            await coll.add(ids=["1"], documents=["x"])
        assert client.statements == []

    async def test_key_conflict_surfaces_as_sql_error(self, client, collection):
        client.on("INSERT INTO", error=SqlError("Duplicate entry '1' for key 'PRIMARY'", code=1062))
        with pytest.raises(SqlError) as excinfo:
            await collection.add(ids=["1"], embeddings=[[1, 2, 3]])
        assert excinfo.value.code == 1062


class TestCollectionUpdate:
    """collection.update()"""

    async def test_partial_update(self, client, collection):
        await collection.update(ids=["1", "2"], metadatas=[{"v": 1}, {"v": 2}])

        updates = client.statements_matching("UPDATE")
        assert updates == [
            ("UPDATE `c$v1$docs` SET metadata = %s WHERE _id = %s", ['{"v": 1}', "1"]),
            ("UPDATE `c$v1$docs` SET metadata = %s WHERE _id = %s", ['{"v": 2}', "2"]),
        ]

    async def test_documents_regenerate_embeddings(self, client, collection):
        await collection.update(ids="1", documents="abcd")

        (sql, params), = client.statements
        assert sql == "UPDATE `c$v1$docs` SET document = %s, embedding = %s WHERE _id = %s"
        assert params == ["abcd", "[4.0,0.0,1.0]", "1"]

    async def test_requires_a_field(self, client, collection):
        with pytest.raises(InvalidInputError):
            await collection.update(ids=["1"])
        assert client.statements == []

    async def test_documents_without_embedding_function(self, client, bare_collection):
        with pytest.raises(InvalidInputError):
            await bare_collection.update(ids=["1"], documents=["text"])


class TestCollectionUpsert:
    """collection.upsert()"""

    async def test_updates_existing_and_inserts_missing(self, client, collection):
        client.on("WHERE _id = %s", rows=[{"_id": b"1"}], once=True)

        await collection.upsert(ids=["1", "2"], embeddings=[[1, 1, 1], [2, 2, 2]], metadatas=[{"a": 1}, {"a": 2}])

        assert client.sqls == [
            "SELECT _id FROM `c$v1$docs` WHERE _id = %s",
            "UPDATE `c$v1$docs` SET metadata = %s, embedding = %s WHERE _id = %s",
            "SELECT _id FROM `c$v1$docs` WHERE _id = %s",
            "INSERT INTO `c$v1$docs` (_id, metadata, embedding) VALUES (%s, %s, %s)",
        ]
        assert client.statements[3][1] == ["2", '{"a": 2}', "[2.0,2.0,2.0]"]

    async def test_documents_without_embedding_function_succeed(self, client, bare_collection):
        await bare_collection.upsert(ids=["1"], documents=["plain text"])

        assert client.sqls[-1] == "INSERT INTO `c$v1$bare` (_id, document) VALUES (%s, %s)"
        assert client.statements[-1][1] == ["1", "plain text"]

    async def test_requires_a_field(self, client, collection):
        with pytest.raises(InvalidInputError):
            await collection.upsert(ids=["1"])


class TestCollectionDelete:
    """collection.delete()"""

    async def test_by_ids(self, client, collection):
        client.on("DELETE FROM", rowcount=2)

        deleted = await collection.delete(ids=["1", "2"])

        assert deleted == 2
        assert client.statements == [("DELETE FROM `c$v1$docs` WHERE _id IN (%s, %s)", ["1", "2"])]

    async def test_by_filters(self, client, collection):
        await collection.delete(where=K("tag") == "old", where_document={"$contains": "draft"})

        (sql, params), = client.statements
        assert sql == (
            "DELETE FROM `c$v1$docs` WHERE JSON_EXTRACT(metadata, '$.tag') = %s "
            "AND MATCH(document) AGAINST (%s IN NATURAL LANGUAGE MODE)"
        )
        assert params == ["old", "draft"]

    @pytest.mark.parametrize("kwargs", [{}, {"ids": []}, {"where": {}}, {"where_document": {}}])
    async def test_without_condition(self, client, collection, kwargs):
        with pytest.raises(InvalidInputError):
            await collection.delete(**kwargs)
        assert client.statements == []
