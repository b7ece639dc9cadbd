"""Errors raised by the query engine."""


class QueryError(Exception):
    """Invalid query construction or a query that cannot be evaluated locally."""
    pass
