import fnmatch
import threading

import pytest

from modelstore_lib.storage import FileStore, MemoryStore, RedisStore, file_backend
from modelstore_lib.storage.base import SetCondition
from modelstore_lib.storage.interfaces import KeyValueStoreProtocol


class FakeRedis:
    """Minimal dict-backed stand-in for a redis-py client."""

    def __init__(self):
        self._data = {}
        self._lock = threading.Lock()

    def get(self, name):
        return self._data.get(name)

    def set(self, name, value, nx=False, xx=False):
        with self._lock:
            if nx and name in self._data:
                return None
            if xx and name not in self._data:
                return None
            self._data[name] = value
            return True

    def delete(self, name):
        return 1 if self._data.pop(name, None) is not None else 0

    def exists(self, name):
        return 1 if name in self._data else 0

    def scan_iter(self, match=None, count=None):
        for k in list(self._data):
            if match is None or fnmatch.fnmatchcase(k, match):
                yield k.encode("utf-8")

    def flushdb(self):
        self._data.clear()


@pytest.fixture(params=["memory", "file", "redis"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    if request.param == "file":
        return FileStore(data_dir=tmp_path / "kv")
    return RedisStore(FakeRedis())


def test_satisfies_protocol(store):
    assert isinstance(store, KeyValueStoreProtocol)


def test_set_get_delete(store):
    assert store.get("k1") is None
    assert store.set("k1", b"one") is True
    assert store.get("k1") == b"one"
    assert store.exists("k1")
    store.delete("k1")
    assert store.get("k1") is None
    # deleting an absent key is fine
    store.delete("k1")


def test_conditional_sets(store):
    assert store.set("k", b"v1", SetCondition.IF_PRESENT) is False
    assert store.get("k") is None
    assert store.set("k", b"v1", SetCondition.IF_ABSENT) is True
    assert store.set("k", b"v2", SetCondition.IF_ABSENT) is False
    assert store.get("k") == b"v1"
    assert store.set("k", b"v3", SetCondition.IF_PRESENT) is True
    assert store.get("k") == b"v3"
    assert store.set("k", b"v4") is True
    assert store.get("k") == b"v4"


def test_keys_and_flush(store):
    store.set("aa1", b"1")
    store.set("aa2", b"2")
    store.set("bb1", b"3")
    assert sorted(store.keys("aa")) == ["aa1", "aa2"]
    assert sorted(store.keys()) == ["aa1", "aa2", "bb1"]
    store.flush()
    assert list(store.keys()) == []


def test_concurrent_if_absent_has_one_winner(store):
    results = []
    barrier = threading.Barrier(8)

    def worker(i):
        barrier.wait()
        results.append(store.set("race", str(i).encode(), SetCondition.IF_ABSENT))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()
    assert results.count(True) == 1


def test_file_store_persists_across_instances(tmp_path):
    FileStore(tmp_path).set("k", b"durable")
    assert FileStore(tmp_path).get("k") == b"durable"
    assert not [p for p in tmp_path.iterdir() if p.name.endswith(".tmp")]


def test_file_store_removes_tmp_file_when_write_fails(tmp_path, monkeypatch):
    store = FileStore(tmp_path)
    store.set("k", b"old")

    def broken_fsync(fd):
        raise OSError("no space left on device")

    monkeypatch.setattr(file_backend.os, "fsync", broken_fsync)
    with pytest.raises(OSError):
        store.set("k", b"new")
    assert store.get("k") == b"old"
    assert not [p for p in tmp_path.iterdir() if p.name.endswith(".tmp")]


def test_redis_store_decodes_string_responses():
    client = FakeRedis()
    client.set("k", "text")
    assert RedisStore(client).get("k") == b"text"
