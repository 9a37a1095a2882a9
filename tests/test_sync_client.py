"""
Blocking facade tests
"""
import pytest

from aioseekdb import HNSWConfiguration
from aioseekdb.client.admin_client import _ClientProxy
from aioseekdb.client.sync import SyncClient, SyncCollection

from conftest import RecordingClient


@pytest.fixture
def recording():
    return RecordingClient()


class TestSyncClient:
    def test_collection_round_trip(self, recording):
        recording.on("COUNT(*)", rows=[{"cnt": 1}])
        with SyncClient(_ClientProxy(server=recording)) as client:
            coll = client.create_collection(
                "docs", configuration=HNSWConfiguration(dimension=3), embedding_function=None
            )
            assert isinstance(coll, SyncCollection)
            assert coll.dimension == 3

            coll.add(ids="1", embeddings=[1, 2, 3])
            assert coll.count() == 1

        assert recording.sqls[0].startswith("CREATE TABLE `c$v1$docs`")
        assert recording.sqls[1].startswith("INSERT INTO `c$v1$docs`")
        assert recording.closed

    def test_unknown_attribute(self, recording):
        client = SyncClient(_ClientProxy(server=recording))
        coll = client.create_collection("docs", configuration=HNSWConfiguration(dimension=3), embedding_function=None)
        with pytest.raises(AttributeError):
            coll.drop_everything
        client.close()
        client.close()

    async def test_refuses_running_loop(self, recording):
        client = SyncClient(_ClientProxy(server=recording))
        try:
            with pytest.raises(RuntimeError, match="running event loop"):
                client.has_collection("docs")
            assert recording.statements == []
        finally:
            client._runner._loop.close()
