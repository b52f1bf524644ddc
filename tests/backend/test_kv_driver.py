import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from modelstore_lib.drivers.kv import KeyValueDriver
from modelstore_lib.errors import DeserializationFailure, InvalidKey, PersistenceFailure, WriteConflict
from modelstore_lib.model.codec import Dialect, PydanticModelCodec
from modelstore_lib.model.keys import persistent_key
from modelstore_lib.model.options import FetchOptions, WriteDisposition, WriteOptions
from modelstore_lib.storage import FileStore, MemoryStore
from tests.models import Line, Order, OrderKey, Person, PersonKey, Pet, Priority, person


class RecordingStore(MemoryStore):
    def __init__(self):
        super().__init__()
        self.threads = []

    def set(self, key, value, condition=None):
        self.threads.append(threading.current_thread().name)
        return super().set(key, value, condition)


class FailingStore(MemoryStore):
    def get(self, key):
        raise OSError("connection reset")

    def set(self, key, value, condition=None):
        raise OSError("connection reset")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def driver(store):
    d = KeyValueDriver(Person, PydanticModelCodec(Person), store)
    yield d
    d.close()


def test_create_generates_key_and_round_trips(driver, store):
    stored = driver.create(person()).result(timeout=5)
    assert stored.key is not None and stored.key.id
    assert store.exists(persistent_key(stored.key.id))
    assert driver.fetch(stored.key) == stored


def test_create_keeps_caller_key(driver):
    key = PersonKey(id="ada")
    stored = driver.create(person(key=key)).result(timeout=5)
    assert stored.key == key


def test_persist_with_none_key_forces_new_record(driver):
    first = driver.persist(None, person()).result(timeout=5)
    second = driver.persist(None, person()).result(timeout=5)
    assert first.key != second.key


def test_retrieve_absent_is_none(driver):
    assert driver.fetch(PersonKey(id="ghost")) is None


def test_must_not_exist_conflict(driver):
    key = PersonKey(id="ada")
    driver.create(person(key=key)).result(timeout=5)
    fut = driver.create(person(key=key, name="Impostor"))
    with pytest.raises(WriteConflict) as info:
        fut.result(timeout=5)
    assert info.value.identifier == "ada"
    assert info.value.disposition is WriteDisposition.MUST_NOT_EXIST
    assert driver.fetch(key).name == "Ada"


def test_must_exist_conflict(driver):
    key = PersonKey(id="nobody")
    with pytest.raises(WriteConflict):
        driver.update(key, person()).result(timeout=5)
    assert driver.fetch(key) is None


def test_update_and_blind_put(driver):
    key = PersonKey(id="ada")
    driver.put(key, person(age=1)).result(timeout=5)
    driver.put(key, person(age=2)).result(timeout=5)
    assert driver.fetch(key).age == 2
    driver.update(key, person(age=3)).result(timeout=5)
    assert driver.fetch(key).age == 3
    options = WriteOptions(write_mode=WriteDisposition.MUST_EXIST)
    driver.persist(key, person(age=4), options).result(timeout=5)
    assert driver.fetch(key).age == 4


def test_stored_key_overrides_embedded_key(driver):
    key = PersonKey(id="real")
    stored = driver.put(key, person(key=PersonKey(id="stale"))).result(timeout=5)
    assert stored.key == key
    assert driver.fetch(key).key == key


def test_delete(driver):
    key = PersonKey(id="ada")
    driver.put(key, person()).result(timeout=5)
    assert driver.delete(key).result(timeout=5) == key
    assert driver.fetch(key) is None
    # deleting an absent record is not an error
    assert driver.delete(key).result(timeout=5) == key


@pytest.mark.parametrize("bad", [None, PersonKey(), PersonKey(id=""), OrderKey(id=1)])
def test_invalid_keys_raise_synchronously(driver, bad):
    with pytest.raises(InvalidKey):
        driver.retrieve(bad)
    with pytest.raises(InvalidKey):
        driver.delete(bad)


def test_persist_rejects_none_model(driver):
    with pytest.raises(ValueError):
        driver.put(PersonKey(id="x"), None)


def test_field_mask(driver):
    key = PersonKey(id="ada")
    driver.put(key, person()).result(timeout=5)
    masked = driver.fetch(key, FetchOptions().with_mask("name", "address.zip_code"))
    assert masked.key == key
    assert masked.name == "Ada"
    assert masked.age == 0
    assert masked.tags == []
    assert masked.address.zip_code == "N1"
    assert masked.address.street == ""


def test_backend_errors_become_persistence_failures():
    d = KeyValueDriver(Person, PydanticModelCodec(Person), FailingStore())
    with pytest.raises(PersistenceFailure):
        d.fetch(PersonKey(id="x"))
    with pytest.raises(PersistenceFailure):
        d.put(PersonKey(id="x"), person()).result(timeout=5)
    d.close()


def test_corrupt_bytes_fail_to_decode(driver, store):
    store.set(persistent_key("junk"), b"not a pickle")
    with pytest.raises(DeserializationFailure):
        driver.fetch(PersonKey(id="junk"))


def test_other_record_type_fails_to_decode(driver, store):
    driver.put(PersonKey(id="x"), person(name="Ada")).result(timeout=5)
    pets = KeyValueDriver(Pet, PydanticModelCodec(Pet), store)
    with pytest.raises(DeserializationFailure):
        pets.fetch(PersonKey(id="x"))
    pets.close()


def test_other_dialect_fails_to_decode(driver, store):
    driver.put(PersonKey(id="x"), person()).result(timeout=5)
    as_json = KeyValueDriver(Person, PydanticModelCodec(Person, Dialect.JSON), store)
    with pytest.raises(DeserializationFailure):
        as_json.fetch(PersonKey(id="x"))
    as_json.close()


def test_options_executor_is_used():
    store = RecordingStore()
    d = KeyValueDriver(Person, PydanticModelCodec(Person), store)
    key = PersonKey(id="ada")
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="caller-pool") as pool:
        d.put(key, person(), WriteOptions(executor=pool)).result(timeout=5)
    d.put(key, person()).result(timeout=5)
    assert store.threads[0].startswith("caller-pool")
    assert store.threads[1].startswith("modelstore-Person")
    d.close()


def test_integer_keys(tmp_path):
    codec = PydanticModelCodec(Order, Dialect.JSON)
    d = KeyValueDriver(Order, codec, FileStore(tmp_path))
    order = Order(
        placed_on=date(2024, 5, 1),
        placed_at=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
        total=Decimal("12.50"),
        priority=Priority.HIGH,
        lines=[Line(sku="A-1", quantity=2)],
        buyer=PersonKey(id="ada"),
        thumbnail=b"PNG",
    )
    stored = d.create(order).result(timeout=5)
    assert isinstance(stored.key.id, int)
    assert d.fetch(stored.key) == stored
    explicit = d.put(OrderKey(id=-7), order).result(timeout=5)
    assert d.fetch(OrderKey(id=-7)) == explicit
    d.close()


def test_concurrent_creates_have_one_winner(driver):
    key = PersonKey(id="contested")
    with ThreadPoolExecutor(max_workers=8) as pool:
        futures = [driver.create(person(key=key, age=i), WriteOptions(executor=pool)) for i in range(8)]
        outcomes = []
        for f in futures:
            try:
                outcomes.append(f.result(timeout=5))
            except WriteConflict:
                outcomes.append(None)
    winners = [o for o in outcomes if o is not None]
    assert len(winners) == 1
    assert driver.fetch(key).age == winners[0].age
