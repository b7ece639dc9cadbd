"""Operator tokens of the document-store query language."""

from enum import Enum


class QueryOperator(str, Enum):
    """Field-level operators written into a field's operator-mapping."""
    EQUALS = "$eq"
    NOT_EQUALS = "$ne"
    IN = "$in"
    NOT_IN = "$nin"
    ALL = "$all"
    GREATER_THAN = "$gt"
    GREATER_OR_EQUAL = "$gte"
    LESS_THAN = "$lt"
    LESS_OR_EQUAL = "$lte"
    EXISTS = "$exists"
    MOD = "$mod"
    REGEX = "$regex"
    REGEX_OPTIONS = "$options"
    SIZE = "$size"

    # Geo
    NEAR_SPHERE = "$nearSphere"
    MAX_DISTANCE = "$maxDistance"
    WITHIN = "$within"
    BOX = "$box"
    POLYGON = "$polygon"


class LogicalOperator(str, Enum):
    """Top-level boolean combinators, loosest binding last."""
    AND = "$and"
    NOR = "$nor"
    OR = "$or"


LOGICAL_OPERATORS = frozenset(op.value for op in LogicalOperator)


class SortDirection(int, Enum):
    ASCENDING = 1
    DESCENDING = -1


SORT_DIRECTIONS = frozenset(direction.value for direction in SortDirection)


def is_operator(key: str) -> bool:
    """Operator keys start with ``$``; everything else is a field name."""
    return isinstance(key, str) and key.startswith("$")
