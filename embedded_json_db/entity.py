from __future__ import annotations
import dataclasses
import json
import types
import typing
from typing import Any, Dict, List, Protocol, Type, TypeVar, Union, runtime_checkable
from .errors import InvalidIdentityError, SerializationError

# Primary key field shared by every entity type
IDENTIFIER_KEY = "id"

T = TypeVar("T")


@runtime_checkable
class Identifiable(Protocol):
    """
    Contract for records stored by the driver.

    identity() names the collection file and may be a classmethod, so both
    driver.open(Customer) and driver.open(customer) work. identifier() returns
    the value stored under IDENTIFIER_KEY.
    """

    def identity(self) -> str: ...

    def identifier(self) -> Any: ...


def identity_of(entity: Any) -> str:
    try:
        ident = entity.identity()
    except (AttributeError, TypeError) as e:
        raise InvalidIdentityError(f"{entity!r} does not provide identity()") from e
    # elemental-style identities carry the tag in .name
    name = getattr(ident, "name", ident)
    if not isinstance(name, str) or not name:
        raise InvalidIdentityError(f"identity must be a non-empty string, got {ident!r}")
    return name


def identifier_of(entity: Any) -> Any:
    try:
        return entity.identifier()
    except (AttributeError, TypeError) as e:
        raise InvalidIdentityError(f"{entity!r} does not provide identifier()") from e


def format_identifier(value: Any) -> str:
    """
    Render an identifier for comparison, so "7", 7 and 7.0 all compare equal.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"))
    return str(value)


def to_document(entity: Any) -> Dict[str, Any]:
    if hasattr(entity, "to_dict"):
        data = entity.to_dict()
    elif dataclasses.is_dataclass(entity) and not isinstance(entity, type):
        data = dataclasses.asdict(entity)
    elif isinstance(entity, dict):
        data = dict(entity)
    elif hasattr(entity, "__dict__"):
        data = {k: v for k, v in vars(entity).items() if not k.startswith("_")}
    else:
        raise SerializationError(f"cannot serialize {type(entity).__name__}")
    # Round trip through JSON: the stored form is exactly what comes back
    try:
        return json.loads(json.dumps(data, ensure_ascii=False))
    except (TypeError, ValueError) as e:
        raise SerializationError(f"{type(entity).__name__} is not JSON serializable: {e}") from e


def _field_types(entity_type: type) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(entity_type)
    except (NameError, TypeError):
        # Unresolvable forward references: leave those fields as plain JSON
        return {}


def _build(tp: Any, value: Any) -> Any:
    """
    Shape a decoded JSON value after the annotation tp: dataclasses (also
    inside List[...], Dict[str, ...] and Optional[...]) are rebuilt, anything
    else is passed through.
    """
    if value is None:
        return None
    if isinstance(tp, type) and dataclasses.is_dataclass(tp) and isinstance(value, dict):
        return _build_dataclass(tp, value)
    origin = typing.get_origin(tp)
    args = typing.get_args(tp)
    if origin is Union or origin is getattr(types, "UnionType", Union):
        inner = [a for a in args if a is not type(None)]
        return _build(inner[0], value) if len(inner) == 1 else value
    if origin in (list, List) and args and isinstance(value, list):
        return [_build(args[0], v) for v in value]
    if origin in (dict, Dict) and len(args) == 2 and isinstance(value, dict):
        return {k: _build(args[1], v) for k, v in value.items()}
    return value


def _build_dataclass(entity_type: type, doc: Dict[str, Any]) -> Any:
    hints = _field_types(entity_type)
    kwargs = {}
    for f in dataclasses.fields(entity_type):
        if f.init and f.name in doc:
            kwargs[f.name] = _build(hints.get(f.name, Any), doc[f.name])
    return entity_type(**kwargs)


def from_document(entity_type: Type[T], doc: Any) -> T:
    if not isinstance(doc, dict):
        raise SerializationError(f"expected an object for {entity_type.__name__}, got {type(doc).__name__}")
    try:
        if hasattr(entity_type, "from_dict"):
            return entity_type.from_dict(doc)  # type: ignore[attr-defined]
        if dataclasses.is_dataclass(entity_type):
            return _build_dataclass(entity_type, doc)
        return entity_type(**doc)
    except (TypeError, ValueError, KeyError) as e:
        raise SerializationError(f"cannot build {entity_type.__name__} from document: {e}") from e


def convert(entity_type: Type[T], snapshot: Any) -> Union[T, List[T]]:
    """
    Convert a snapshot into entities: an object gives one instance, an array
    gives a list of instances.
    """
    try:
        snapshot = json.loads(json.dumps(snapshot, ensure_ascii=False))
    except (TypeError, ValueError) as e:
        raise SerializationError(f"snapshot is not JSON serializable: {e}") from e
    if isinstance(snapshot, list):
        return [from_document(entity_type, doc) for doc in snapshot]
    return from_document(entity_type, snapshot)
