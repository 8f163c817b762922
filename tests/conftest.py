import pytest

from fakes import FakeConnection, FakePool, MemoryStore


@pytest.fixture
def fake_conn():
    return FakeConnection()


@pytest.fixture
def fake_pool(fake_conn):
    return FakePool(fake_conn)


@pytest.fixture
def memory_store():
    return MemoryStore()
