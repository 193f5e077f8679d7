from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
from .errors import QueryError, UnknownOperatorError

logger = logging.getLogger(__name__)

Predicate = Callable[[Any, Any], bool]


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


@dataclass(frozen=True)
class Clause:
    key: str
    operator: str
    value: Any


ClauseGroup = List[Clause]


def _same_kind(a: Any, b: Any) -> bool:
    # JSON true/false must not compare equal to 1/0
    return isinstance(a, bool) == isinstance(b, bool)


def _eq(actual: Any, expected: Any) -> bool:
    return _same_kind(actual, expected) and actual == expected


def _ne(actual: Any, expected: Any) -> bool:
    return not _eq(actual, expected)


def _ordered(cmp: Callable[[Any, Any], bool]) -> Predicate:
    def predicate(actual: Any, expected: Any) -> bool:
        if actual is None or expected is None or not _same_kind(actual, expected):
            return False
        try:
            return bool(cmp(actual, expected))
        except TypeError:
            return False
    return predicate


def _in(actual: Any, expected: Any) -> bool:
    if not isinstance(expected, (list, tuple, set, frozenset)):
        return False
    return any(_eq(actual, item) for item in expected)


def _nin(actual: Any, expected: Any) -> bool:
    if not isinstance(expected, (list, tuple, set, frozenset)):
        return False
    return not _in(actual, expected)


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, list):
        return any(_eq(item, expected) for item in actual)
    if isinstance(actual, str):
        return str(expected) in actual
    return False


def _startswith(actual: Any, expected: Any) -> bool:
    return isinstance(actual, str) and actual.startswith(str(expected))


def _endswith(actual: Any, expected: Any) -> bool:
    return isinstance(actual, str) and actual.endswith(str(expected))


def _regex(actual: Any, expected: Any) -> bool:
    if not isinstance(actual, str):
        return False
    pattern = expected if isinstance(expected, re.Pattern) else re.compile(str(expected))
    return pattern.search(actual) is not None


class OperatorRegistry:
    """
    Operator tag -> predicate(actual, expected).
    """
    def __init__(self, operators: Optional[Dict[str, Predicate]] = None) -> None:
        self._ops: Dict[str, Predicate] = {}
        for name, fn in (operators or {}).items():
            self.register(name, fn)

    def register(self, name: str, predicate: Predicate) -> None:
        if not name or not isinstance(name, str):
            raise ValueError("operator name must be a non-empty string")
        if not callable(predicate):
            raise ValueError(f"predicate for {name!r} is not callable")
        self._ops[name] = predicate

    def resolve(self, name: str) -> Predicate:
        try:
            return self._ops[name]
        except KeyError:
            raise UnknownOperatorError(name) from None

    def names(self) -> List[str]:
        return sorted(self._ops)

    def __contains__(self, name: object) -> bool:
        return name in self._ops


def default_registry() -> OperatorRegistry:
    return OperatorRegistry({
        "=": _eq,
        "==": _eq,
        "!=": _ne,
        "<>": _ne,
        ">": _ordered(lambda a, b: a > b),
        ">=": _ordered(lambda a, b: a >= b),
        "<": _ordered(lambda a, b: a < b),
        "<=": _ordered(lambda a, b: a <= b),
        "in": _in,
        "nin": _nin,
        "contains": _contains,
        "startswith": _startswith,
        "endswith": _endswith,
        "regex": _regex,
    })


def extract(document: Any, key: str) -> Any:
    """
    Value at a '/' separated path, or MISSING.
    """
    cur: Any = document
    for part in (p for p in key.split("/") if p):
        if not isinstance(cur, dict) or part not in cur:
            return MISSING
        cur = cur[part]
    return cur


def match_clause(document: Any, clause: Clause, registry: OperatorRegistry) -> bool:
    predicate = registry.resolve(clause.operator)
    actual = extract(document, clause.key)
    if actual is MISSING:
        return False
    try:
        return bool(predicate(actual, clause.value))
    except Exception as e:
        raise QueryError(
            f"operator {clause.operator!r} failed on {clause.key!r}: {type(e).__name__}: {e}"
        ) from e


def match_group(document: Any, group: Sequence[Clause], registry: OperatorRegistry) -> bool:
    return all(match_clause(document, clause, registry) for clause in group)


def matches(document: Any, groups: Sequence[Sequence[Clause]], registry: OperatorRegistry) -> bool:
    if not isinstance(document, dict):
        return False
    return any(match_group(document, group, registry) for group in groups)


def filter_documents(
    documents: Iterable[Any],
    groups: Sequence[Sequence[Clause]],
    registry: OperatorRegistry,
) -> List[Any]:
    # Unknown operators fail the whole query up front, even on an empty collection
    for group in groups:
        for clause in group:
            registry.resolve(clause.operator)
    out = [doc for doc in documents if matches(doc, groups, registry)]
    logger.debug("query with %d group(s) matched %d record(s)", len(groups), len(out))
    return out
