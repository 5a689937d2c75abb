import pytest

from cache.cache_store import CacheStore
from tests.fakes import CACHE_KEY, FakeContentStore


@pytest.fixture
def store():
    return FakeContentStore()


@pytest.fixture
def cache(store):
    return CacheStore(store, CACHE_KEY)
