"""Criteria: a fluent builder for document-store queries.

A Criteria holds the projected fields, the filter tree, the sort order and the
skip/limit window of a query. It can be serialized for the remote API or
evaluated directly against locally cached records.

Example usage:
    criteria = (Criteria()
                .equal_to('status', 'active')
                .greater_than('age', 21)
                .descending('created_at'))
    criteria.limit = 10
    params = criteria.to_query_string()

Boolean precedence is AND, then NOR, then OR, whatever order the calls are
made in:
    Criteria().equal_to('a', 1).and_(q2).or_(q3)
    # {'$or': [{'$and': [{'a': {'$eq': 1}}, q2.filter]}, q3.filter]}

Calling a combinator without arguments opens a scope and returns a new
Criteria for the right-hand side:
    Criteria().equal_to('a', 1).or_().equal_to('b', 2)
    # {'$or': [{'a': {'$eq': 1}}, {'b': {'$eq': 2}}]}
"""

import copy
import re
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from ..utils.config import get_config
from ..utils.logging import get_smart_logger
from . import evaluator, serializer
from .coercion import is_number, to_coordinate, to_number, to_whole_number, wrap_values
from .errors import QueryError
from .operators import LOGICAL_OPERATORS, LogicalOperator, QueryOperator, SortDirection
from .schemas import QuerySnapshot

logger = get_smart_logger()


@dataclass
class RegexOptions:
    """Options for :meth:`Criteria.matches`.

    ``None`` means "inherit from the compiled pattern's flags".
    """
    ignore_case: Optional[bool] = None
    multiline: Optional[bool] = None
    extended: Optional[bool] = None
    dot_matches_all: Optional[bool] = None

    @classmethod
    def coerce(cls, options: Union["RegexOptions", Mapping[str, Any], None]) -> "RegexOptions":
        if options is None:
            return cls()
        if isinstance(options, RegexOptions):
            return options
        if isinstance(options, Mapping):
            unknown = set(options) - {'ignore_case', 'multiline', 'extended', 'dot_matches_all'}
            if unknown:
                raise QueryError(f"Unknown regex options: {', '.join(sorted(unknown))}")
            return cls(**options)
        raise QueryError("options must be a RegexOptions or an Object")


@dataclass
class _CriteriaState:
    """Authoritative non-filter state, owned by the root of a scope chain."""
    fields: List[str] = field(default_factory=list)
    sort: Dict[str, int] = field(default_factory=dict)
    skip: int = 0
    limit: Optional[int] = None


class Criteria:
    """Query object with a fluent interface.

    A Criteria is either *owned* (it has its own ``_CriteriaState``) or
    *scoped* to an owner, in which case it was created by an argument-less
    ``and_()``/``or_()``/``nor()`` call and its filter is the right-hand
    operand already embedded in the owner's filter tree. Fields, sort, skip,
    limit and serialization of a scoped Criteria resolve to the root owner.
    """

    def __init__(self, options: Union[Mapping[str, Any], QuerySnapshot, None] = None):
        """Create a Criteria.

        Args:
            options: Canonical snapshot (``fields``, ``filter``, ``sort``,
                ``limit``, ``skip``); missing keys take their defaults.

        Raises:
            QueryError: If any part of ``options`` is invalid
        """
        snapshot = QuerySnapshot.parse(options)
        self._filter: Dict[str, Any] = snapshot.filter
        self._state: Optional[_CriteriaState] = _CriteriaState(
            fields=list(snapshot.fields),
            sort=dict(snapshot.sort),
            skip=snapshot.skip,
            limit=snapshot.limit,
        )
        self._owner: Optional["Criteria"] = None

    @classmethod
    def from_plain_object(cls, obj: Union[Mapping[str, Any], QuerySnapshot]) -> "Criteria":
        """Rebuild a Criteria from the output of :meth:`to_plain_object`."""
        return cls(obj)

    @classmethod
    def _scoped_to(cls, owner: "Criteria") -> "Criteria":
        scoped = cls.__new__(cls)
        scoped._filter = {}
        scoped._state = None
        scoped._owner = owner
        return scoped

    # ------------------------------------------------------------------
    # Scope resolution
    # ------------------------------------------------------------------

    @property
    def owner(self) -> Optional["Criteria"]:
        return self._owner

    @property
    def is_scoped(self) -> bool:
        return self._owner is not None

    def _root(self) -> "Criteria":
        criteria = self
        while criteria._owner is not None:
            criteria = criteria._owner
        return criteria

    def _writable_state(self) -> _CriteriaState:
        """The one place where a scoped Criteria forwards to its root."""
        return self._root()._state

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def filter(self) -> Dict[str, Any]:
        """This Criteria's filter node (live, mutate only via the fluent API)."""
        return self._filter

    @property
    def fields(self) -> List[str]:
        return self._writable_state().fields

    @fields.setter
    def fields(self, fields: Optional[Sequence[str]]):
        if fields is not None and not isinstance(fields, (list, tuple)):
            raise QueryError("fields must be an Array")
        self._writable_state().fields = QuerySnapshot.parse({"fields": fields}).fields

    @property
    def sort(self) -> Dict[str, int]:
        return self._writable_state().sort

    @sort.setter
    def sort(self, sort: Optional[Mapping[str, int]]):
        if sort is not None and not isinstance(sort, Mapping):
            raise QueryError("sort must be an Object")
        self._writable_state().sort = QuerySnapshot.parse({"sort": sort}).sort

    @property
    def limit(self) -> Optional[int]:
        return self._writable_state().limit

    @limit.setter
    def limit(self, limit: Union[int, str, None]):
        self._writable_state().limit = QuerySnapshot.parse({"limit": limit}).limit

    @property
    def skip(self) -> int:
        return self._writable_state().skip

    @skip.setter
    def skip(self, skip: Union[int, str, None]):
        self._writable_state().skip = QuerySnapshot.parse({"skip": skip}).skip

    # ------------------------------------------------------------------
    # Offline support
    # ------------------------------------------------------------------

    def unsupported_offline_operators(self) -> List[str]:
        """Operators in the filter tree that the local evaluator cannot run.

        Only top-level fields are inspected unless
        ``query.recursive_offline_check`` is enabled.
        """
        config = get_config()
        unsupported = config.unsupported_offline_operators
        found: Set[str] = set()
        _collect_operators(self._root()._filter, unsupported, config.recursive_offline_check, found)
        return [operator for operator in unsupported if operator in found]

    def is_supported_offline(self) -> bool:
        """True if the query can be evaluated against the local cache."""
        return not self.unsupported_offline_operators()

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def add_filter(self, field: str, operator: Union[str, Enum], value: Any) -> "Criteria":
        """Merge ``operator: value`` into ``field``'s operator-mapping."""
        if not isinstance(field, str) or not field:
            raise QueryError("field must be a non-empty string")
        if isinstance(operator, Enum):
            operator = operator.value

        conditions = self._filter.get(field)
        if not isinstance(conditions, dict):
            conditions = {}
            self._filter[field] = conditions

        conditions[operator] = value
        return self

    def equal_to(self, field: str, value: Any) -> "Criteria":
        """Require ``field`` to equal ``value``."""
        return self.add_filter(field, QueryOperator.EQUALS, value)

    def not_equal_to(self, field: str, value: Any) -> "Criteria":
        """Require ``field`` not to equal ``value``."""
        return self.add_filter(field, QueryOperator.NOT_EQUALS, value)

    def contains(self, field: str, values: Any) -> "Criteria":
        """Require ``field`` to match at least one of ``values``."""
        return self.add_filter(field, QueryOperator.IN, wrap_values(values))

    def not_contained_in(self, field: str, values: Any) -> "Criteria":
        """Require ``field`` to match none of ``values``."""
        return self.add_filter(field, QueryOperator.NOT_IN, wrap_values(values))

    def contains_all(self, field: str, values: Any) -> "Criteria":
        """Require the array ``field`` to contain every one of ``values``."""
        return self.add_filter(field, QueryOperator.ALL, wrap_values(values))

    def greater_than(self, field: str, value: Union[int, float, str]) -> "Criteria":
        return self.add_filter(field, QueryOperator.GREATER_THAN, _comparable(value))

    def greater_than_or_equal_to(self, field: str, value: Union[int, float, str]) -> "Criteria":
        return self.add_filter(field, QueryOperator.GREATER_OR_EQUAL, _comparable(value))

    def less_than(self, field: str, value: Union[int, float, str]) -> "Criteria":
        return self.add_filter(field, QueryOperator.LESS_THAN, _comparable(value))

    def less_than_or_equal_to(self, field: str, value: Union[int, float, str]) -> "Criteria":
        return self.add_filter(field, QueryOperator.LESS_OR_EQUAL, _comparable(value))

    def exists(self, field: str, flag: bool = True) -> "Criteria":
        """Require ``field`` to exist (or, with ``flag=False``, to be absent)."""
        return self.add_filter(field, QueryOperator.EXISTS, bool(flag))

    def mod(self, field: str, divisor: Union[int, float, str],
            remainder: Union[int, float, str] = 0) -> "Criteria":
        """Require ``field % divisor == remainder``."""
        divisor = to_number(divisor, "divisor")
        if divisor == 0:
            raise QueryError("divisor must not be zero")
        remainder = to_number(remainder, "remainder")
        return self.add_filter(field, QueryOperator.MOD, [divisor, remainder])

    def matches(self, field: str, reg_exp: Union[str, "re.Pattern[str]"],
                options: Union[RegexOptions, Mapping[str, Any], None] = None) -> "Criteria":
        """Require ``field`` to match an anchored regular expression.

        Args:
            field: Field
            reg_exp: Pattern string or compiled pattern; must start with ``^``
            options: ``ignore_case``, ``multiline``, ``extended``, ``dot_matches_all``

        Raises:
            QueryError: If case-insensitive matching is requested, or the
                pattern is not anchored
        """
        options = RegexOptions.coerce(options)
        pattern = _compile(reg_exp)

        if (pattern.flags & re.IGNORECASE or options.ignore_case) and options.ignore_case is not False:
            raise QueryError("ignore_case flag is not supported.")

        if not pattern.pattern.startswith('^'):
            raise QueryError("reg_exp must have `^` at the beginning of the expression "
                             "to make it an anchored expression.")

        flags = ''
        for letter, pattern_flag, option in (('m', re.MULTILINE, options.multiline),
                                             ('x', re.VERBOSE, options.extended),
                                             ('s', re.DOTALL, options.dot_matches_all)):
            if (pattern.flags & pattern_flag or option) and option is not False:
                flags += letter

        result = self.add_filter(field, QueryOperator.REGEX, pattern.pattern)
        if flags:
            self.add_filter(field, QueryOperator.REGEX_OPTIONS, flags)
        else:
            self._filter[field].pop(QueryOperator.REGEX_OPTIONS.value, None)
        return result

    def near(self, field: str, coord: Sequence[Union[int, float]],
             max_distance: Union[int, float, str, None] = None) -> "Criteria":
        """Require ``field`` to be a coordinate near ``coord`` (longitude, latitude).

        The remote store sorts results nearest first; this operator cannot be
        evaluated offline.
        """
        if not isinstance(coord, (list, tuple)) or len(coord) < 2 \
                or not is_number(coord[0]) or not is_number(coord[1]):
            raise QueryError("coord must be a [number, number]")
        if max_distance is not None:
            max_distance = to_number(max_distance, "max_distance")

        result = self.add_filter(field, QueryOperator.NEAR_SPHERE, [coord[0], coord[1]])
        if max_distance:
            self.add_filter(field, QueryOperator.MAX_DISTANCE, max_distance)
        return result

    def within_box(self, field: str, bottom_left_coord: Sequence[Any],
                   upper_right_coord: Sequence[Any]) -> "Criteria":
        """Require ``field`` to lie inside the rectangle spanned by two corners."""
        box = [to_coordinate(bottom_left_coord, "bottom_left_coord"),
               to_coordinate(upper_right_coord, "upper_right_coord")]
        return self.add_filter(field, QueryOperator.WITHIN, {QueryOperator.BOX.value: box})

    def within_polygon(self, field: str, coords: Sequence[Sequence[Any]]) -> "Criteria":
        """Require ``field`` to lie inside the polygon defined by ``coords``."""
        max_points = get_config().max_polygon_points
        if not isinstance(coords, (list, tuple)) or len(coords) > max_points:
            raise QueryError(f"coords must be [[number, number]] with at most {max_points} points")

        polygon = [to_coordinate(coord, "coords") for coord in coords]
        return self.add_filter(field, QueryOperator.WITHIN, {QueryOperator.POLYGON.value: polygon})

    def size(self, field: str, size: Union[int, str]) -> "Criteria":
        """Require the array ``field`` to have exactly ``size`` members."""
        return self.add_filter(field, QueryOperator.SIZE, to_whole_number(size, "size"))

    # ------------------------------------------------------------------
    # Sorting
    # ------------------------------------------------------------------

    def ascending(self, field: str) -> "Criteria":
        return self._set_direction(field, SortDirection.ASCENDING)

    def descending(self, field: str) -> "Criteria":
        return self._set_direction(field, SortDirection.DESCENDING)

    def _set_direction(self, field: str, direction: SortDirection) -> "Criteria":
        if not isinstance(field, str) or not field:
            raise QueryError("field must be a non-empty string")
        # Re-assigning an existing key keeps its tie-break position
        self._writable_state().sort[field] = direction.value
        return self

    # ------------------------------------------------------------------
    # Joins
    # ------------------------------------------------------------------

    def and_(self, *criteria: Union["Criteria", Mapping[str, Any]]) -> "Criteria":
        """Logical AND with ``criteria``; without arguments, opens a scope.

        AND binds tightest, so it always applies to this Criteria even when
        it is itself scoped.
        """
        return self._combine(LogicalOperator.AND, criteria) if criteria else self.open_and()

    def nor(self, *criteria: Union["Criteria", Mapping[str, Any]]) -> "Criteria":
        """Logical NOR with ``criteria``; without arguments, opens a scope."""
        target = self._nor_target()
        return target._combine(LogicalOperator.NOR, criteria) if criteria else target.open_nor()

    def or_(self, *criteria: Union["Criteria", Mapping[str, Any]]) -> "Criteria":
        """Logical OR with ``criteria``; without arguments, opens a scope.

        OR binds loosest, so it is applied to the root of the scope chain.
        """
        target = self._root()
        return target._combine(LogicalOperator.OR, criteria) if criteria else target.open_or()

    def open_and(self) -> "Criteria":
        """Start an AND and return the new right-hand side Criteria."""
        return self._open_scope(LogicalOperator.AND)

    def open_nor(self) -> "Criteria":
        """Start a NOR and return the new right-hand side Criteria."""
        return self._nor_target()._open_scope(LogicalOperator.NOR)

    def open_or(self) -> "Criteria":
        """Start an OR and return the new right-hand side Criteria."""
        return self._root()._open_scope(LogicalOperator.OR)

    def _nor_target(self) -> "Criteria":
        # An AND applied by the owner must still outrank this NOR
        criteria = self
        while criteria._owner is not None and LogicalOperator.AND.value in criteria._owner._filter:
            criteria = criteria._owner
        return criteria

    def _combine(self, operator: LogicalOperator, criteria: Iterable[Any]) -> "Criteria":
        operands = [_operand_filter(sub) for sub in criteria]
        self._wrap_filter(operator, operands)
        return self

    def _open_scope(self, operator: LogicalOperator) -> "Criteria":
        scoped = Criteria._scoped_to(self)
        self._wrap_filter(operator, [scoped._filter])
        return scoped

    def _wrap_filter(self, operator: LogicalOperator, operands: List[Dict[str, Any]]):
        # Emptied in place: scoped children hold references to this dict
        left = dict(self._filter)
        self._filter.clear()
        self._filter[operator.value] = [left, *operands]

        logger.debug("criteria_joined",
                     operator=operator.value,
                     operands=len(operands) + 1,
                     scoped=self.is_scoped)

    # ------------------------------------------------------------------
    # Evaluation and serialization
    # ------------------------------------------------------------------

    def process(self, records: Optional[Sequence[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
        """Apply filter, projection, sort and skip/limit to cached records.

        Records that survive the filter are projected in place.

        Raises:
            QueryError: If the query cannot run locally or ``records`` is not
                a list
        """
        return evaluator.process(self, records)

    def to_plain_object(self) -> Dict[str, Any]:
        """Canonical ``{fields, filter, sort, skip, limit}`` of the whole query."""
        root = self._root()
        return serializer.to_plain_object(root._filter, root._state)

    def to_json(self) -> Dict[str, Any]:
        """Deprecated alias of :meth:`to_plain_object`."""
        warnings.warn("to_json() is deprecated, use to_plain_object() instead",
                      DeprecationWarning, stacklevel=2)
        return self.to_plain_object()

    def to_query_string(self) -> Dict[str, str]:
        """URL parameters for the remote API."""
        return serializer.to_query_string(self.to_plain_object())

    def __str__(self) -> str:
        return serializer.to_string(self.to_plain_object())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_plain_object()!r})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Criteria):
            return NotImplemented
        return self.to_plain_object() == other.to_plain_object()

    __hash__ = None


def _comparable(value: Any) -> Union[int, float, str]:
    if not is_number(value) and not isinstance(value, str):
        raise QueryError("You must supply a number or string.")
    return value


def _compile(reg_exp: Any) -> "re.Pattern[str]":
    if isinstance(reg_exp, re.Pattern):
        pattern = reg_exp
    elif isinstance(reg_exp, str):
        try:
            pattern = re.compile(reg_exp)
        except re.error as exc:
            raise QueryError(f"reg_exp is not a valid regular expression: {exc}") from exc
    else:
        raise QueryError("reg_exp must be a string or a compiled pattern")

    if not isinstance(pattern.pattern, str):
        raise QueryError("reg_exp must be a text pattern")
    return pattern


def _operand_filter(sub: Any) -> Dict[str, Any]:
    if isinstance(sub, Criteria):
        return copy.deepcopy(sub.filter)
    if isinstance(sub, (Mapping, QuerySnapshot)):
        return Criteria(sub).filter
    raise QueryError("query argument must be of type: Criteria[] or Object[].")


def _collect_operators(filter_tree: Mapping[str, Any], operators: Sequence[str],
                       recursive: bool, found: Set[str]):
    for key, value in filter_tree.items():
        if key in LOGICAL_OPERATORS:
            if recursive and isinstance(value, (list, tuple)):
                for sub_tree in value:
                    if isinstance(sub_tree, Mapping):
                        _collect_operators(sub_tree, operators, recursive, found)
        elif isinstance(value, Mapping):
            found.update(operator for operator in operators if operator in value)


# The name callers of the remote API know it by
Query = Criteria
