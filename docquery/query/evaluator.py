"""Local evaluation of a query against cached records.

The pipeline is filter, project, sort, paginate:

1. Filter: each record is tested against the filter tree by the predicate
   matcher (``mongoquery``), which implements the document-store operators
   including ``$and``/``$or``/``$nor``.
2. Project: keys not listed in ``fields`` are deleted from each surviving
   record, in place.
3. Sort: stable multi-field sort in ``sort`` insertion order. Records missing
   a sort field come after records that have it, whatever the direction.
4. Paginate: ``records[skip:skip + limit]``, or ``records[skip:]`` without a
   limit.
"""

import functools
import json
from datetime import date
from numbers import Real
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

from mongoquery import Query as MatcherQuery
from mongoquery import QueryError as MatcherError

from ..utils.logging import get_smart_logger, log_operation
from .coercion import is_number
from .errors import QueryError
from .operators import LOGICAL_OPERATORS, QueryOperator

if TYPE_CHECKING:
    from .criteria import Criteria

logger = get_smart_logger()

_MISSING = object()


def _matcher_filter(filter_tree: Mapping[str, Any]) -> Dict[str, Any]:
    """Fold ``$options`` into its ``$regex`` as ``/pattern/flags``."""
    prepared: Dict[str, Any] = {}
    for key, value in filter_tree.items():
        if key in LOGICAL_OPERATORS and isinstance(value, (list, tuple)):
            prepared[key] = [_matcher_filter(sub) if isinstance(sub, Mapping) else sub for sub in value]
        elif isinstance(value, Mapping) and QueryOperator.REGEX.value in value:
            conditions = dict(value)
            flags = conditions.pop(QueryOperator.REGEX_OPTIONS.value, None)
            if flags:
                conditions[QueryOperator.REGEX.value] = f"/{conditions[QueryOperator.REGEX.value]}/{flags}"
            prepared[key] = conditions
        else:
            prepared[key] = value
    return prepared


class _GuardedMatcher(MatcherQuery):
    """Matcher whose numeric and array operators reject ill-typed values.

    A missing field, or a value of the wrong type, fails the condition
    instead of raising out of ``process()``.
    """

    def _mod(self, condition, entry):
        if not isinstance(condition, (list, tuple)) or len(condition) != 2:
            raise QueryError("$mod must be [divisor, remainder]")
        divisor, remainder = condition
        if not is_number(divisor) or divisor == 0:
            return False
        if isinstance(entry, (list, tuple)):
            return any(is_number(item) and item % divisor == remainder for item in entry)
        return is_number(entry) and entry % divisor == remainder

    def _size(self, condition, entry):
        if not isinstance(entry, (list, tuple)):
            return False
        return super()._size(condition, entry)

    def _all(self, condition, entry):
        if not isinstance(entry, (list, tuple)):
            return False
        return super()._all(condition, entry)


def _build_matcher(filter_tree: Mapping[str, Any]) -> MatcherQuery:
    try:
        return _GuardedMatcher(_matcher_filter(filter_tree))
    except MatcherError as exc:
        raise QueryError(f"This query is not able to run locally: {exc}") from exc


def _match(matcher: MatcherQuery, record: Mapping[str, Any]) -> bool:
    try:
        return matcher.match(record)
    except MatcherError as exc:
        raise QueryError(f"This query is not able to run locally: {exc}") from exc


def matches(filter_tree: Mapping[str, Any], record: Mapping[str, Any]) -> bool:
    """Whether one record satisfies ``filter_tree``."""
    return _match(_build_matcher(filter_tree), record)


def lookup(record: Any, path: str) -> Any:
    """Resolve a dotted field path, returning ``_MISSING`` when absent."""
    current = record
    for part in path.split('.'):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return _MISSING
    return current


def _type_rank(value: Any) -> int:
    # null < numbers < strings < objects < arrays < booleans < dates
    if value is None:
        return 0
    if isinstance(value, bool):
        return 5
    if isinstance(value, Real):
        return 1
    if isinstance(value, str):
        return 2
    if isinstance(value, Mapping):
        return 3
    if isinstance(value, (list, tuple)):
        return 4
    if isinstance(value, date):
        return 6
    return 7


def compare_values(a: Any, b: Any) -> int:
    """Total order over record values: -1, 0 or 1."""
    rank_a, rank_b = _type_rank(a), _type_rank(b)
    if rank_a != rank_b:
        return -1 if rank_a < rank_b else 1
    if a == b:
        return 0
    try:
        return -1 if a < b else 1
    except TypeError:
        # Unorderable pairs (mappings, mixed arrays, naive vs aware dates)
        key_a = json.dumps(a, sort_keys=True, default=str)
        key_b = json.dumps(b, sort_keys=True, default=str)
        return (key_a > key_b) - (key_a < key_b)


def compare_records(a: Mapping[str, Any], b: Mapping[str, Any], sort: Mapping[str, int]) -> int:
    for field, direction in sort.items():
        value_a, value_b = lookup(a, field), lookup(b, field)

        if value_a is _MISSING and value_b is _MISSING:
            continue
        if value_b is _MISSING:
            return -1
        if value_a is _MISSING:
            return 1

        result = compare_values(value_a, value_b)
        if result:
            return result * direction

    return 0


def sort_records(records: List[Dict[str, Any]], sort: Mapping[str, int]) -> List[Dict[str, Any]]:
    if not sort:
        return records
    key = functools.cmp_to_key(lambda a, b: compare_records(a, b, sort))
    return sorted(records, key=key)


def project(records: List[Dict[str, Any]], fields: Sequence[str]) -> List[Dict[str, Any]]:
    if not fields:
        return records
    keep = set(fields)
    for record in records:
        for key in [key for key in record if key not in keep]:
            del record[key]
    return records


def paginate(records: List[Dict[str, Any]], skip: int, limit: Optional[int]) -> List[Dict[str, Any]]:
    if limit:
        return records[skip:skip + limit]
    return records[skip:]


def process(criteria: "Criteria", records: Optional[Sequence[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
    """Evaluate ``criteria`` against ``records``.

    Raises:
        QueryError: If the query uses operators that cannot run locally, or
            ``records`` is not a list
    """
    unsupported = criteria.unsupported_offline_operators()
    if unsupported:
        logger.error("offline_query_unsupported", operators=unsupported)
        raise QueryError("This query is not able to run locally. The following filters "
                         "are not supported locally: " + " ".join(unsupported))

    if records is None:
        return None

    if not isinstance(records, (list, tuple)):
        raise QueryError("data argument must be of type: Array.")

    snapshot = criteria.to_plain_object()

    with log_operation(operation="process", records_in=len(records)):
        matcher = _build_matcher(snapshot["filter"])
        result = [record for record in records if _match(matcher, record)]
        result = project(result, snapshot["fields"])
        result = sort_records(result, snapshot["sort"])
        result = paginate(result, snapshot["skip"], snapshot["limit"])

        logger.debug("local_query_processed",
                     records_in=len(records),
                     records_out=len(result))

    return result
