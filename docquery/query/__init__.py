"""Query algebra and local evaluation engine."""

from .criteria import Criteria, Query, RegexOptions
from .errors import QueryError
from .evaluator import matches
from .operators import LogicalOperator, QueryOperator, SortDirection
from .schemas import QuerySnapshot

__all__ = [
    "Criteria",
    "Query",
    "RegexOptions",
    "QueryError",
    "QuerySnapshot",
    "QueryOperator",
    "LogicalOperator",
    "SortDirection",
    "matches",
]
