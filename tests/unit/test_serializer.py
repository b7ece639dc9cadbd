"""Tests for snapshots, wire parameters and string forms of a query."""

import json
import warnings

import pytest

from docquery.query import Criteria, QuerySnapshot
from docquery.query.serializer import to_query_string


class TestPlainObject:
    """Test to_plain_object and reconstruction."""

    def test_defaults(self):
        """Test the snapshot of an empty Criteria."""
        assert Criteria().to_plain_object() == {
            'fields': [],
            'filter': {},
            'sort': {},
            'skip': 0,
            'limit': None,
        }

    def test_round_trip(self):
        """Test a rebuilt Criteria equals the one it came from."""
        criteria = (Criteria()
                    .equal_to('a', 1)
                    .or_(Criteria().greater_than('b', 2))
                    .descending('b'))
        criteria.fields = ['a', 'b']
        criteria.limit = 10
        criteria.skip = 5

        rebuilt = Criteria(criteria.to_plain_object())
        assert rebuilt == criteria
        assert rebuilt.to_plain_object() == criteria.to_plain_object()

    def test_snapshot_is_a_copy(self):
        """Test mutating the snapshot does not touch the Criteria."""
        criteria = Criteria().contains('a', [1])
        snapshot = criteria.to_plain_object()
        snapshot['filter']['a']['$in'].append(2)
        snapshot['fields'].append('x')
        assert criteria.filter == {'a': {'$in': [1]}}
        assert criteria.fields == []

    def test_snapshot_model_is_accepted(self):
        """Test a validated QuerySnapshot can seed a Criteria."""
        snapshot = QuerySnapshot.parse({'filter': {'a': 1}, 'limit': '3'})
        criteria = Criteria(snapshot)
        assert criteria.filter == {'a': {'$eq': 1}}
        assert criteria.limit == 3

    def test_to_json_is_deprecated(self):
        """Test the old name still works but warns."""
        criteria = Criteria().equal_to('a', 1)
        with pytest.warns(DeprecationWarning):
            assert criteria.to_json() == criteria.to_plain_object()

    def test_equality(self):
        """Test equality follows the snapshot."""
        assert Criteria().equal_to('a', 1) == Criteria({'filter': {'a': 1}})
        assert Criteria().equal_to('a', 1) != Criteria().equal_to('a', 2)
        assert Criteria() != {'filter': {}}


class TestQueryString:
    """Test URL parameters for the remote API."""

    def test_all_parts(self):
        """Test every populated part is encoded."""
        criteria = Criteria().equal_to('a', 1).descending('a')
        criteria.fields = ['a', 'b']
        criteria.limit = 10
        criteria.skip = 5
        assert criteria.to_query_string() == {
            'query': '{"a":{"$eq":1}}',
            'fields': 'a,b',
            'limit': '10',
            'skip': '5',
            'sort': '{"a":-1}',
        }

    def test_empty_parts_omitted(self):
        """Test an empty Criteria produces no parameters."""
        assert Criteria().to_query_string() == {}

    def test_zero_limit_and_skip_omitted(self):
        """Test limit 0 and skip 0 are not sent."""
        criteria = Criteria().equal_to('a', 1)
        criteria.limit = 0
        assert set(criteria.to_query_string()) == {'query'}

    def test_non_json_values_are_stringified(self):
        """Test values json cannot encode fall back to their string form."""
        from datetime import date
        params = to_query_string({'filter': {'d': {'$gt': date(2024, 1, 2)}}})
        assert params == {'query': '{"d":{"$gt":"2024-01-02"}}'}

    def test_scope_serializes_root(self):
        """Test a scope returns the parameters of the whole query."""
        root = Criteria().equal_to('a', 1)
        child = root.or_().equal_to('b', 2)
        assert child.to_query_string() == {'query': '{"$or":[{"a":{"$eq":1}},{"b":{"$eq":2}}]}'}


class TestStringForms:
    """Test __str__ and __repr__."""

    def test_str_is_json_of_query_string(self):
        """Test str() is the JSON of the wire parameters."""
        criteria = Criteria().equal_to('a', 1)
        criteria.limit = 2
        assert json.loads(str(criteria)) == criteria.to_query_string()

    def test_repr(self):
        """Test repr names the class and the snapshot."""
        text = repr(Criteria().equal_to('a', 1))
        assert text.startswith('Criteria(')
        assert "'filter': {'a': {'$eq': 1}}" in text

    def test_str_does_not_warn(self):
        """Test the string form avoids the deprecated alias."""
        with warnings.catch_warnings():
            warnings.simplefilter('error')
            str(Criteria().equal_to('a', 1))
