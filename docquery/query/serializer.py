"""Conversions of a query to its canonical snapshot and to wire parameters."""

import copy
import json
from typing import Any, Dict

from ..utils.config.constants import QUERY_STRING_JSON_SEPARATORS


def to_plain_object(filter_tree: Dict[str, Any], state: Any) -> Dict[str, Any]:
    """Build the canonical snapshot from a root filter and its state.

    Everything is copied, so the snapshot can be stored or handed to another
    Criteria without aliasing the live query.
    """
    return {
        "fields": list(state.fields),
        "filter": copy.deepcopy(filter_tree),
        "sort": dict(state.sort),
        "skip": state.skip,
        "limit": state.limit,
    }


def _encode(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=QUERY_STRING_JSON_SEPARATORS, default=str)


def to_query_string(snapshot: Dict[str, Any]) -> Dict[str, str]:
    """Map a snapshot to URL query parameters.

    Empty parts are omitted. ``query`` and ``sort`` are JSON strings, ``fields``
    is comma-joined.
    """
    params: Dict[str, Any] = {}

    if snapshot.get("filter"):
        params["query"] = snapshot["filter"]

    if snapshot.get("fields"):
        params["fields"] = ",".join(snapshot["fields"])

    if snapshot.get("limit"):
        params["limit"] = snapshot["limit"]

    if (snapshot.get("skip") or 0) > 0:
        params["skip"] = snapshot["skip"]

    if snapshot.get("sort"):
        params["sort"] = snapshot["sort"]

    return {key: _encode(value) for key, value in params.items()}


def to_string(snapshot: Dict[str, Any]) -> str:
    """Debug/log representation; transports must use :func:`to_query_string`."""
    return json.dumps(to_query_string(snapshot), separators=QUERY_STRING_JSON_SEPARATORS)
