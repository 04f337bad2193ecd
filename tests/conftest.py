"""
Shared fixtures for the sync engine tests.
"""
import pytest

from putiosync.sync import SyncEngine
from tests.fixtures.mock_putio_client import FakeFetcher, MockPutIoClient


@pytest.fixture
def mock_client():
    """A put.io account holding only the root folder."""
    return MockPutIoClient()


@pytest.fixture
def movies_client(mock_client):
    """
    Root -> Movies(10) -> a.mkv(100, 500 bytes)
                       -> Sub(11) -> b.mkv(101, 200 bytes)
    """
    mock_client.add_folder(10, "Movies", parent_id=0)
    mock_client.add_file(100, "a.mkv", parent_id=10, content=b"a" * 500)
    mock_client.add_folder(11, "Sub", parent_id=10)
    mock_client.add_file(101, "b.mkv", parent_id=11, content=b"b" * 200)
    return mock_client


@pytest.fixture
def fetcher_for():
    """Build a FakeFetcher bound to a client."""
    def build(client, failing_ids=()):
        return FakeFetcher(client, failing_ids)
    return build


@pytest.fixture
def make_engine(tmp_path):
    """Build a SyncEngine that mirrors into tmp_path/mirror."""
    def build(client, fetcher, **kwargs):
        kwargs.setdefault("staging_root", tmp_path / "staging")
        return SyncEngine(client=client, base_local_path=tmp_path / "mirror", fetcher=fetcher, **kwargs)
    return build
