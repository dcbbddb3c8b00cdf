"""Metadata filter predicate trees.
SPDX-License-Identifier: BUSL-1.1

A filter is an immutable tree: leaves compare one metadata field, inner
nodes combine children with and/or/not. ``evaluate`` takes a plain mapping;
``matches`` takes a Unit and evaluates against its ``filter_view()``.

Missing-field rules:
- equals, range, string and membership leaves and ``exists`` are False
- not_equals, not_in and not_exists are True
"""
from __future__ import annotations

from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .errors import FilterError
from .types import Unit

_MISSING = object()

LEAF_OPS = (
    "eq", "ne", "gt", "gte", "lt", "lte",
    "in", "nin", "contains", "starts_with", "ends_with",
    "exists", "not_exists",
)
BOOL_OPS = ("and", "or", "not")
_RANGE_OPS = ("gt", "gte", "lt", "lte")
_STRING_OPS = ("contains", "starts_with", "ends_with")


def _numeric(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    return float(value)


@dataclass(frozen=True)
class MetadataFilter:
    op: str
    field: Optional[str] = None
    value: Any = None
    children: Tuple["MetadataFilter", ...] = ()

    def __post_init__(self) -> None:
        if self.op in LEAF_OPS:
            if not isinstance(self.field, str) or not self.field:
                raise FilterError(f"{self.op}: field must be a non-empty string")
            if self.op in _RANGE_OPS and _numeric(self.value) is None:
                raise FilterError(f"{self.op}: bound must be numeric, got {self.value!r}")
            if self.op in _STRING_OPS and not isinstance(self.value, str):
                raise FilterError(f"{self.op}: operand must be a string, got {self.value!r}")
            if self.op in ("in", "nin"):
                if isinstance(self.value, (str, bytes)) or not isinstance(self.value, (list, tuple, set, frozenset)):
                    raise FilterError(f"{self.op}: operand must be a list, got {self.value!r}")
                object.__setattr__(self, "value", tuple(self.value))
        elif self.op in BOOL_OPS:
            kids = tuple(self.children)
            for k in kids:
                if not isinstance(k, MetadataFilter):
                    raise FilterError(f"{self.op}: children must be filters, got {type(k).__name__}")
            if self.op == "not" and len(kids) != 1:
                raise FilterError("not: exactly one child required")
            object.__setattr__(self, "children", kids)
        else:
            raise FilterError(f"unknown filter operator: {self.op!r}")

    # -- evaluation -------------------------------------------------------

    def evaluate(self, record: Mapping[str, Any]) -> bool:
        op = self.op
        if op == "and":
            return all(c.evaluate(record) for c in self.children)
        if op == "or":
            return any(c.evaluate(record) for c in self.children)
        if op == "not":
            return not self.children[0].evaluate(record)

        value = record.get(self.field, _MISSING) if self.field is not None else _MISSING
        if value is _MISSING:
            return op in ("ne", "nin", "not_exists")
        if op == "eq":
            return _equal(value, self.value)
        if op == "ne":
            return not _equal(value, self.value)
        if op == "exists":
            return value is not None
        if op == "not_exists":
            return value is None
        if op == "in":
            return any(_equal(value, v) for v in self.value)
        if op == "nin":
            return not any(_equal(value, v) for v in self.value)
        if op in _RANGE_OPS:
            num = _numeric(value)
            if num is None:
                return False
            bound = float(self.value)
            if op == "gt":
                return num > bound
            if op == "gte":
                return num >= bound
            if op == "lt":
                return num < bound
            return num <= bound
        if not isinstance(value, str):
            return False
        if op == "contains":
            return self.value in value
        if op == "starts_with":
            return value.startswith(self.value)
        return value.endswith(self.value)

    def matches(self, unit: Unit) -> bool:
        return self.evaluate(unit.filter_view())

    # -- parsing ----------------------------------------------------------

    @classmethod
    def from_dict(cls, spec: Mapping[str, Any]) -> "MetadataFilter":
        """Parse a JSON-like filter.

        Accepted shapes::

            {"and": [f1, f2]}  {"or": [...]}  {"not": f}
            {"field": value}                      # equality
            {"field": {"$gte": 3, "$lt": 9}}      # several leaves, AND-ed
        """
        if not isinstance(spec, Mapping):
            raise FilterError(f"filter must be a mapping, got {type(spec).__name__}")
        parts = []
        for key, val in spec.items():
            if key in ("and", "or", "$and", "$or"):
                if not isinstance(val, (list, tuple)):
                    raise FilterError(f"{key}: expected a list of filters")
                kids = tuple(cls.from_dict(v) for v in val)
                parts.append(cls(key.lstrip("$"), children=kids))
            elif key in ("not", "$not"):
                parts.append(cls("not", children=(cls.from_dict(val),)))
            elif isinstance(val, Mapping):
                if not val:
                    raise FilterError(f"{key}: empty operator mapping")
                for raw_op, operand in val.items():
                    op = _OP_ALIASES.get(raw_op)
                    if op is None:
                        raise FilterError(f"unknown filter operator: {raw_op!r}")
                    if op in ("exists", "not_exists"):
                        if not operand:
                            op = "not_exists" if op == "exists" else "exists"
                        parts.append(cls(op, key))
                    else:
                        parts.append(cls(op, key, operand))
            else:
                parts.append(cls("eq", key, val))
        if len(parts) == 1:
            return parts[0]
        return cls("and", children=tuple(parts))


_OP_ALIASES: Dict[str, str] = {}
for _op in LEAF_OPS:
    _OP_ALIASES[_op] = _op
    _OP_ALIASES["$" + _op] = _op
_OP_ALIASES.update({"$prefix": "starts_with", "$suffix": "ends_with", "$not_in": "nin", "not_in": "nin"})


def _equal(a: Any, b: Any) -> bool:
    # bool is an int subclass; keep True distinct from 1
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


# -- constructors ---------------------------------------------------------

def _listish(values: Iterable[Any]) -> Any:
    # strings are rejected by validation, not split into characters
    return values if isinstance(values, (str, bytes)) else tuple(values)


def equals(field: str, value: Any) -> MetadataFilter:
    return MetadataFilter("eq", field, value)


def not_equals(field: str, value: Any) -> MetadataFilter:
    return MetadataFilter("ne", field, value)


def gt(field: str, value: float) -> MetadataFilter:
    return MetadataFilter("gt", field, value)


def gte(field: str, value: float) -> MetadataFilter:
    return MetadataFilter("gte", field, value)


def lt(field: str, value: float) -> MetadataFilter:
    return MetadataFilter("lt", field, value)


def lte(field: str, value: float) -> MetadataFilter:
    return MetadataFilter("lte", field, value)


def between(field: str, low: float, high: float) -> MetadataFilter:
    """Inclusive range."""
    return and_(gte(field, low), lte(field, high))


def in_(field: str, values: Iterable[Any]) -> MetadataFilter:
    return MetadataFilter("in", field, _listish(values))


def not_in(field: str, values: Iterable[Any]) -> MetadataFilter:
    return MetadataFilter("nin", field, _listish(values))


def contains(field: str, substring: str) -> MetadataFilter:
    return MetadataFilter("contains", field, substring)


def starts_with(field: str, prefix: str) -> MetadataFilter:
    return MetadataFilter("starts_with", field, prefix)


def ends_with(field: str, suffix: str) -> MetadataFilter:
    return MetadataFilter("ends_with", field, suffix)


def exists(field: str) -> MetadataFilter:
    return MetadataFilter("exists", field)


def not_exists(field: str) -> MetadataFilter:
    return MetadataFilter("not_exists", field)


def and_(*filters: MetadataFilter) -> MetadataFilter:
    return MetadataFilter("and", children=tuple(filters))


def or_(*filters: MetadataFilter) -> MetadataFilter:
    return MetadataFilter("or", children=tuple(filters))


def not_(f: MetadataFilter) -> MetadataFilter:
    return MetadataFilter("not", children=(f,))


def combine(base: Optional[MetadataFilter], extra: MetadataFilter) -> MetadataFilter:
    """AND ``extra`` onto an optional caller filter."""
    if base is None:
        return extra
    return and_(extra, base)
