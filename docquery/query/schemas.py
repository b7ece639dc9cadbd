"""Canonical snapshot of a query: ``{fields, filter, sort, skip, limit}``.

This is both the serialized form of a Criteria and the accepted constructor
input, so a paused query can be rebuilt from it.
"""

import copy
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .coercion import all_strings, is_number, to_whole_number
from .errors import QueryError
from .operators import LOGICAL_OPERATORS, SORT_DIRECTIONS, QueryOperator, is_operator


def normalize_filter(filter_tree: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a deep copy of ``filter_tree`` with shorthand equality expanded.

    ``{"a": 1}`` becomes ``{"a": {"$eq": 1}}``. A mapping value whose keys are
    not all operators is an exact sub-document match and is wrapped the same
    way. Combinator lists are normalized recursively.
    """
    if not isinstance(filter_tree, Mapping):
        raise QueryError("filter must be an object")

    normalized: Dict[str, Any] = {}
    for key, value in filter_tree.items():
        if key in LOGICAL_OPERATORS:
            if not isinstance(value, (list, tuple)):
                raise QueryError(f"{key} must be an array of filters")
            normalized[key] = [normalize_filter(sub_tree) for sub_tree in value]
        elif is_operator(key):
            # Top-level operators other than combinators ($where, $text...) pass through
            normalized[key] = copy.deepcopy(value)
        elif isinstance(value, Mapping) and value and all(is_operator(k) for k in value):
            normalized[key] = copy.deepcopy(dict(value))
        else:
            normalized[key] = {QueryOperator.EQUALS.value: copy.deepcopy(value)}
    return normalized


class QuerySnapshot(BaseModel):
    """Validated query state."""
    fields: List[str] = Field(default_factory=list)
    filter: Dict[str, Any] = Field(default_factory=dict)
    sort: Dict[str, int] = Field(default_factory=dict)
    skip: int = 0
    limit: Optional[int] = None

    @field_validator("fields", mode="before")
    def ensure_fields(cls, v):
        if v is None:
            return []
        if not isinstance(v, (list, tuple)) or not all_strings(v):
            raise ValueError("fields must be an Array of strings")
        return list(v)

    @field_validator("filter", mode="before")
    def ensure_filter(cls, v):
        if v is None:
            return {}
        return normalize_filter(v)

    @field_validator("sort", mode="before")
    def ensure_sort(cls, v):
        if v is None:
            return {}
        if not isinstance(v, Mapping):
            raise ValueError("sort must be an Object")
        for field_name, direction in v.items():
            if not is_number(direction) or direction not in SORT_DIRECTIONS:
                raise ValueError(f"sort direction for {field_name!r} must be 1 or -1")
        return {field_name: int(direction) for field_name, direction in v.items()}

    @field_validator("skip", mode="before")
    def ensure_skip(cls, v):
        if v is None:
            return 0
        return to_whole_number(v, "skip")

    @field_validator("limit", mode="before")
    def ensure_limit(cls, v):
        if v is None:
            return None
        return to_whole_number(v, "limit")

    @classmethod
    def parse(cls, options: Any) -> "QuerySnapshot":
        """Validate ``options`` and translate any failure into QueryError."""
        if options is None:
            return cls()
        if isinstance(options, QuerySnapshot):
            return options.model_copy(deep=True)
        if not isinstance(options, Mapping):
            raise QueryError("query options must be an Object")

        known = {key: options[key] for key in cls.model_fields if key in options}
        try:
            return cls(**known)
        except ValidationError as exc:
            raise QueryError(_describe(exc)) from exc


def _describe(exc: ValidationError) -> str:
    """First validation message, without pydantic's 'Value error, ' prefix."""
    errors = exc.errors()
    if not errors:
        return str(exc)
    message = errors[0].get("msg", str(exc))
    prefix = "Value error, "
    return message[len(prefix):] if message.startswith(prefix) else message
