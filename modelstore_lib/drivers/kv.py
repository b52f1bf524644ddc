"""Driver for key-value collaborators.

Records are encoded with the driver's codec and stored as opaque bytes under
hex keys built by `modelstore_lib.model.keys`. Write dispositions map onto
the collaborator's conditional set:

    MUST_NOT_EXIST -> IF_ABSENT
    MUST_EXIST     -> IF_PRESENT
    BLIND          -> ALWAYS

A rejected conditional set fails the returned future with `WriteConflict`;
nothing is retried.
"""
from __future__ import annotations
import logging
from concurrent.futures import Executor, Future
from typing import Any, Optional, Type

from pydantic import BaseModel

from modelstore_lib.errors import PersistenceException, PersistenceFailure, WriteConflict
from modelstore_lib.model import metadata
from modelstore_lib.model.codec import ModelCodec
from modelstore_lib.model.driver import DEFAULT_MAX_WORKERS, PersistenceDriver
from modelstore_lib.model.keys import KeyRole, encode_key
from modelstore_lib.model.options import (
    DELETE_DEFAULTS,
    FETCH_DEFAULTS,
    WRITE_DEFAULTS,
    DeleteOptions,
    FetchOptions,
    WriteDisposition,
    WriteOptions,
)
from modelstore_lib.storage.base import KeyValueStore, SetCondition

logger = logging.getLogger(__name__)

CONDITIONS = {
    WriteDisposition.MUST_NOT_EXIST: SetCondition.IF_ABSENT,
    WriteDisposition.MUST_EXIST: SetCondition.IF_PRESENT,
    WriteDisposition.BLIND: SetCondition.ALWAYS,
}


class KeyValueDriver(PersistenceDriver):
    def __init__(self, model: Type[BaseModel], codec: ModelCodec, store: KeyValueStore, *,
                 executor: Optional[Executor] = None,
                 max_workers: int = DEFAULT_MAX_WORKERS) -> None:
        super().__init__(model, codec, executor=executor, max_workers=max_workers)
        self.store = store

    @staticmethod
    def address(identifier: Any) -> str:
        return encode_key(KeyRole.PERSISTENT, identifier)

    def _call(self, what: str, identifier: Any, fn, *args):
        try:
            return fn(*args)
        except PersistenceException:
            raise
        except Exception as exc:
            raise PersistenceFailure(f"Failed to {what} record at ID '{identifier}': {exc}") from exc

    # -- retrieve -------------------------------------------------------------

    def retrieve(self, key, options: FetchOptions = FETCH_DEFAULTS) -> Future:
        identifier = self.id_of(key)
        target = self.address(identifier)
        logger.debug("Retrieving model at ID '%s'", identifier)
        return self.submit(options, self._retrieve, key, identifier, target, options)

    def _retrieve(self, key, identifier: Any, target: str, options: FetchOptions):
        data = self._call("read", identifier, self.store.get, target)
        if data is None:
            logger.debug("No record found at ID '%s'", identifier)
            return None
        model = self.codec.decode(data)
        model = metadata.apply_mask(model, options.field_mask, self.schema)
        return metadata.splice_key(model, self.schema, key)

    # -- persist --------------------------------------------------------------

    def persist(self, key, model, options: WriteOptions = WRITE_DEFAULTS) -> Future:
        if model is None:
            raise ValueError("Cannot persist a `None` model")
        if key is None:
            target_key = self.generate_key(model)
            disposition = WriteDisposition.MUST_NOT_EXIST
        else:
            target_key = key
            disposition = options.write_mode or WriteDisposition.BLIND
        identifier = self.id_of(target_key)
        target = self.address(identifier)
        logger.debug("Persisting model at ID '%s' (disposition: %s)", identifier, disposition.name)
        return self.submit(options, self._persist, target_key, identifier, target, model, disposition)

    def _persist(self, key, identifier: Any, target: str, model, disposition: WriteDisposition):
        data = self.codec.encode(model)
        written = self._call("write", identifier, self.store.set, target, data, CONDITIONS[disposition])
        if not written:
            logger.error("Write failure: key collision or rejection at ID '%s'", identifier)
            raise WriteConflict(identifier, model, disposition)
        logger.info("Wrote record at ID '%s'", identifier)
        return metadata.splice_key(model, self.schema, key)

    # -- delete ---------------------------------------------------------------

    def delete(self, key, options: DeleteOptions = DELETE_DEFAULTS) -> Future:
        identifier = self.id_of(key)
        target = self.address(identifier)
        logger.debug("Deleting model at ID '%s'", identifier)
        return self.submit(options, self._delete, key, identifier, target)

    def _delete(self, key, identifier: Any, target: str):
        self._call("delete", identifier, self.store.delete, target)
        logger.info("Deleted record at ID '%s'", identifier)
        return key
