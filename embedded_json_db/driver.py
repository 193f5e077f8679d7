from __future__ import annotations
import contextlib
import logging
import threading
from typing import Any, Dict, Iterator, List, Optional, Type, TypeVar, Union
from .entity import IDENTIFIER_KEY, convert, format_identifier, identifier_of, identity_of, to_document
from .errors import (
    DBError,
    DeleteFailedError,
    NotOpenedError,
    RecordNotFoundError,
    ConfigurationError,
    UpdateFailedError,
)
from .progress import Progress, ProgressCallback
from .query import Clause, ClauseGroup, OperatorRegistry, Predicate, default_registry, filter_documents
from .storage import DEFAULT_EXTENSION, FileStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Driver:
    """
    Fluent query/CRUD front end over a directory of JSON collection files.

        db = Driver("data")
        db.insert(Customer(id="C1", name="Ann"))
        ann = db.open(Customer).where("name", "=", "Ann").first().as_entity(Customer)

    open/where/or_where/get/first never raise on bad data: failures go to
    `errors` and the chain keeps going with an empty result. as_entity and the
    mutating methods raise.

    A chain open() ... as_entity() is not safe to interleave with another chain
    on the same instance. insert/update/delete each hold the driver lock for
    their whole read-modify-write.
    """
    def __init__(
        self,
        path: str,
        *,
        operators: Optional[Dict[str, Predicate]] = None,
        indent: Optional[int] = None,
        extension: str = DEFAULT_EXTENSION,
        guard_reads: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.path = path
        self._fs = FileStorage(path, indent=indent, extension=extension)
        self._registry: OperatorRegistry = default_registry()
        for name, fn in (operators or {}).items():
            self._registry.register(name, fn)
        self._guard_reads = guard_reads
        self._progress = Progress(on_progress)
        # update/delete call open() while holding the lock
        self._lock = threading.RLock()

        self._identity: Optional[str] = None
        self._groups: List[ClauseGroup] = []
        self._cursor = 0
        self._pristine: Any = None
        self._working: Any = None
        self._opened = False
        self._open_error: Optional[DBError] = None
        self._errors: List[Exception] = []

    # ----- state -----

    @property
    def identity(self) -> Optional[str]:
        return self._identity

    @property
    def operators(self) -> OperatorRegistry:
        return self._registry

    @property
    def errors(self) -> List[Exception]:
        return list(self._errors)

    def clear_errors(self) -> None:
        self._errors.clear()

    def _add_error(self, err: Exception) -> None:
        logger.warning("%s: %s", type(err).__name__, err)
        self._errors.append(err)

    @contextlib.contextmanager
    def _read_guard(self) -> Iterator[None]:
        if self._guard_reads:
            with self._lock:
                yield
        else:
            yield

    # ----- chainable -----

    def open(self, entity: Any) -> "Driver":
        with self._read_guard():
            self._groups = []
            self._cursor = 0
            self._opened = True
            self._open_error = None
            self._identity = None
            try:
                identity = identity_of(entity)
                self._fs.path_for(identity)
                self._identity = identity
                doc = self._fs.read_document(identity)
            except DBError as e:
                doc = None
                self._open_error = e
                self._add_error(e)
            self._pristine = doc
            self._working = doc
        return self

    def where(self, key: str, operator: str, value: Any) -> "Driver":
        """
        AND a clause into the current group.
        """
        clause = Clause(key, operator, value)
        if self._cursor >= len(self._groups):
            self._groups.append([clause])
            self._cursor = len(self._groups) - 1
        else:
            self._groups[self._cursor].append(clause)
        return self

    def or_where(self, key: str, operator: str, value: Any) -> "Driver":
        """
        Start a new group, OR'd with the ones before it.
        """
        self._groups.append([Clause(key, operator, value)])
        self._cursor = len(self._groups) - 1
        return self

    def get(self) -> "Driver":
        if not self._opened:
            return self
        with self._read_guard():
            if self._groups:
                self._process_query()
            else:
                self._working = self._pristine
            self._cursor = 0
        return self

    def first(self) -> "Driver":
        if not self._opened:
            return self
        records = self.get().raw_array()
        if records:
            self._working = records[0]
        else:
            self._working = None
            self._add_error(RecordNotFoundError("no records to perform first() on"))
        return self

    def _process_query(self) -> None:
        docs = self._pristine if isinstance(self._pristine, list) else []
        try:
            self._working = filter_documents(docs, self._groups, self._registry)
        except ConfigurationError as e:
            self._working = []
            self._add_error(e)

    # ----- results -----

    def raw(self) -> Any:
        return self._working

    def raw_array(self) -> List[Any]:
        if isinstance(self._working, list):
            return self._working
        return []

    def as_entity(self, entity_type: Type[T]) -> Union[T, List[T]]:
        """
        Convert the result of get() or first() into entity_type instances:
        a list after get(), a single instance after first().
        """
        if not self._opened:
            raise NotOpenedError("call open() before as_entity()")
        if self._working is None or (isinstance(self._working, list) and not self._working):
            raise RecordNotFoundError()
        return convert(entity_type, self._working)

    # ----- mutations -----

    def insert(self, entity: Any) -> None:
        identity = identity_of(entity)
        doc = to_document(entity)
        with self._lock:
            self._progress.emit("insert.start", 0, identity)
            self._identity = identity
            self._fs.append(identity, doc)
            self._progress.emit("insert.done", 100, identity)
        logger.info("inserted %s %s=%s", identity, IDENTIFIER_KEY, doc.get(IDENTIFIER_KEY))

    def update(self, entity: Any) -> None:
        """
        Replace the stored record whose identifier matches entity's.
        Raises UpdateFailedError when there is none.
        """
        entity_id = format_identifier(identifier_of(entity))
        doc = to_document(entity)
        with self._lock:
            self._progress.emit("update.start", 0)
            records = self._reload(entity)
            identity = self._identity
            total = len(records)
            step = max(1, total // 10)
            replaced = False
            for i, record in enumerate(records, 1):
                if self._same_id(record, entity_id):
                    records[i - 1] = doc
                    replaced = True
                    break
                if i % step == 0:
                    self._progress.scan("update.scan", i, total)
            if not replaced:
                raise UpdateFailedError()
            self._fs.write_all(identity, records)
            self._pristine = self._working = records
            self._progress.emit("update.done", 100)
        logger.info("updated %s %s=%s", identity, IDENTIFIER_KEY, entity_id)

    def delete(self, entity: Any) -> None:
        """
        Remove every stored record whose identifier matches entity's.
        """
        entity_id = format_identifier(identifier_of(entity))
        with self._lock:
            self._progress.emit("delete.start", 0)
            records = self._reload(entity)
            identity = self._identity
            total = len(records)
            step = max(1, total // 10)
            kept: List[Any] = []
            for i, record in enumerate(records, 1):
                if not self._same_id(record, entity_id):
                    kept.append(record)
                if i % step == 0:
                    self._progress.scan("delete.scan", i, total)
            removed = total - len(kept)
            if removed == 0:
                raise DeleteFailedError(
                    f"failed to delete, unable to find any {identity} record "
                    f"with {IDENTIFIER_KEY} {entity_id}"
                )
            self._fs.write_all(identity, kept)
            self._pristine = self._working = kept
            self._progress.emit("delete.done", 100, f"removed {removed}")
        logger.info("deleted %d %s record(s) with %s=%s", removed, identity, IDENTIFIER_KEY, entity_id)

    def upsert(self, entity: Any) -> None:
        # update and insert run under one lock
        with self._lock:
            try:
                self.update(entity)
            except UpdateFailedError:
                self.insert(entity)

    def _reload(self, entity: Any) -> List[Any]:
        self.open(entity)
        if self._open_error is not None:
            raise self._open_error
        return list(self.get().raw_array())

    @staticmethod
    def _same_id(record: Any, entity_id: str) -> bool:
        return (
            isinstance(record, dict)
            and IDENTIFIER_KEY in record
            and format_identifier(record[IDENTIFIER_KEY]) == entity_id
        )
