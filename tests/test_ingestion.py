import pytest

from cache.cache_store import CacheStore
from ingestion.ingest_pipeline import IngestionDriver
from tests.fakes import CACHE_KEY, make_documents


def _driver(store, cache, **kwargs):
    kwargs.setdefault("max_files", 1000)
    kwargs.setdefault("checkpoint_every", 10)
    return IngestionDriver(store, cache, kb_id="kb-test", show_progress=False, **kwargs)


def test_ingests_every_document(store, cache):
    make_documents(store, 3)

    result = _driver(store, cache).run()

    assert result.total_found == 3
    assert result.newly_processed == 3
    assert result.skipped_cached == 0
    assert not result.cap_reached
    assert cache.get("doc-1.txt") == "text of 1"


def test_second_run_adds_nothing(store, cache):
    make_documents(store, 12)
    _driver(store, cache).run()
    entries = dict(cache.items())
    calls = len(store.passage_calls)

    result = _driver(store, cache).run()

    assert result.newly_processed == 0
    assert result.skipped_cached == 12
    assert result.checkpoints == 0
    assert dict(cache.items()) == entries
    assert len(store.passage_calls) == calls


def test_cap_is_a_prefix_cutoff(store, cache):
    make_documents(store, 150)

    result = _driver(store, cache, max_files=100).run()

    assert result.considered == 100
    assert result.skipped_by_cap == 50
    assert result.cap_reached
    assert len(cache) == 100
    assert [k for k, _ in cache.items()] == [f"doc-{i}.txt" for i in range(100)]
    assert not any(f"file_{i}" in store.passage_calls for i in range(100, 150))


def test_checkpoints_every_n_and_at_the_end(store, cache):
    make_documents(store, 25)

    result = _driver(store, cache, checkpoint_every=10).run()

    # after 10, after 20, and the final flush
    assert result.checkpoints == 3
    assert len(store.uploads) == 3


def test_small_run_is_still_persisted(store, cache):
    make_documents(store, 3)

    _driver(store, cache, checkpoint_every=10).run()

    assert store.uploads == [CACHE_KEY]
    restored = CacheStore(store, CACHE_KEY)
    restored.load()
    assert len(restored) == 3


def test_resume_after_interruption(store, cache):
    make_documents(store, 30)
    store.fail_passages_for = {"file_24"}

    with pytest.raises(RuntimeError):
        _driver(store, cache, checkpoint_every=10).run()

    # only the checkpointed documents survive the crash
    resumed = CacheStore(store, CACHE_KEY)
    resumed.load()
    assert len(resumed) == 20

    store.fail_passages_for = set()
    store.passage_calls.clear()
    result = _driver(store, resumed, checkpoint_every=10).run()

    assert result.skipped_cached == 20
    assert result.newly_processed == 10
    assert store.passage_calls == [f"file_{i}" for i in range(20, 30)]
    assert len(resumed) == 30


def test_cached_documents_do_not_count_toward_checkpoints(store, cache):
    make_documents(store, 15)
    for i in range(10):
        cache.put(f"doc-{i}.txt", "already there")

    result = _driver(store, cache, checkpoint_every=10).run()

    assert result.skipped_cached == 10
    assert result.newly_processed == 5
    assert result.checkpoints == 1


def test_zero_cap_considers_nothing(store, cache):
    make_documents(store, 5)

    result = _driver(store, cache, max_files=0).run()

    assert result.considered == 0
    assert result.newly_processed == 0
    assert result.skipped_by_cap == 5
    assert len(cache) == 0
    assert store.passage_calls == []
    assert store.uploads == []


def test_no_duplicate_upload_when_last_checkpoint_covers_everything(store, cache):
    make_documents(store, 20)

    result = _driver(store, cache, checkpoint_every=10).run()

    assert result.newly_processed == 20
    assert result.checkpoints == 2
    assert len(store.uploads) == 2
    assert not cache.dirty


def test_non_positive_checkpoint_interval_rejected(store, cache):
    with pytest.raises(ValueError):
        _driver(store, cache, checkpoint_every=0)
