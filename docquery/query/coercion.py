"""Numeric conversion used by the fluent query operations.

Query arguments frequently arrive as strings (form fields, URL parameters),
so numeric operators accept a numeric string and parse it. Anything that does
not end up as a finite number is rejected with QueryError.
"""

import math
from numbers import Real
from typing import Any, List, Sequence, Union

from .errors import QueryError

Number = Union[int, float]


def is_number(value: Any) -> bool:
    """True for real numbers; booleans are not numbers here."""
    return isinstance(value, Real) and not isinstance(value, bool)


def to_number(value: Any, name: str) -> Number:
    """Parse ``value`` into a finite int or float.

    Integral strings become ``int`` so ``"5"`` serializes as ``5``, not ``5.0``.

    Raises:
        QueryError: If the value is not numeric or not finite
    """
    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text)
        except ValueError:
            try:
                value = float(text)
            except ValueError:
                raise QueryError(f"{name} must be a number") from None

    if not is_number(value) or not math.isfinite(value):
        raise QueryError(f"{name} must be a number")

    return value


def to_whole_number(value: Any, name: str) -> int:
    """Like :func:`to_number` but the result must be a non-negative integer."""
    number = to_number(value, name)
    if number < 0 or int(number) != number:
        raise QueryError(f"{name} must be a non-negative whole number")
    return int(number)


def to_float(value: Any, name: str) -> float:
    return float(to_number(value, name))


def to_coordinate(coord: Any, name: str) -> List[float]:
    """Coerce a ``[x, y]`` pair to floats.

    Raises:
        QueryError: If ``coord`` is not a sequence with two present components
    """
    if not isinstance(coord, (list, tuple)) or len(coord) < 2 or coord[0] is None or coord[1] is None:
        raise QueryError(f"{name} must be a [number, number]")
    return [to_float(coord[0], name), to_float(coord[1], name)]


def wrap_values(values: Any) -> List[Any]:
    """Wrap a scalar into a one-element list; copy real sequences to a list."""
    if isinstance(values, (list, tuple, set, frozenset)):
        return list(values)
    return [values]


def all_strings(values: Sequence[Any]) -> bool:
    return all(isinstance(value, str) for value in values)
