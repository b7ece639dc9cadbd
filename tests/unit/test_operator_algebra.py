"""Tests for boolean joins between queries.

Precedence is AND, then NOR, then OR, regardless of call order. Calling a
combinator without arguments opens a scope and returns the right-hand side.
"""

import pytest

from docquery.query import Criteria, QueryError

A = {'a': {'$eq': 1}}
B = {'b': {'$eq': 2}}
C = {'c': {'$eq': 3}}
D = {'d': {'$eq': 4}}


def q(field, value):
    return Criteria().equal_to(field, value)


class TestJoinWithArguments:
    """Test and_/or_/nor with explicit operands."""

    def test_and(self):
        """Test AND wraps the current filter and the operand."""
        assert q('a', 1).and_(q('b', 2)).filter == {'$and': [A, B]}

    def test_or(self):
        """Test OR wraps the current filter and the operand."""
        assert q('a', 1).or_(q('b', 2)).filter == {'$or': [A, B]}

    def test_nor(self):
        """Test NOR wraps the current filter and the operand."""
        assert q('a', 1).nor(q('b', 2)).filter == {'$nor': [A, B]}

    def test_multiple_operands(self):
        """Test every operand joins the same combinator."""
        assert q('a', 1).and_(q('b', 2), q('c', 3)).filter == {'$and': [A, B, C]}

    def test_and_then_or(self):
        """Test OR applied after AND wraps the AND."""
        criteria = q('a', 1).and_(q('b', 2)).or_(q('c', 3))
        assert criteria.filter == {'$or': [{'$and': [A, B]}, C]}

    def test_join_returns_self(self):
        """Test joins at the root return the same Criteria."""
        criteria = q('a', 1)
        assert criteria.and_(q('b', 2)) is criteria

    def test_mapping_operand_is_normalized(self):
        """Test snapshot mappings are accepted as operands."""
        criteria = q('a', 1).and_({'filter': {'b': 2}})
        assert criteria.filter == {'$and': [A, B]}

    def test_invalid_operand_leaves_filter_untouched(self):
        """Test operand validation happens before the join."""
        criteria = q('a', 1)
        with pytest.raises(QueryError, match='Criteria'):
            criteria.and_(q('b', 2), 42)
        assert criteria.filter == A

    def test_operands_are_copied(self):
        """Test later changes to an operand do not leak into the join."""
        operand = q('b', 2)
        criteria = q('a', 1).and_(operand)
        operand.equal_to('x', 9)
        assert criteria.filter == {'$and': [A, B]}

    def test_operand_state_is_not_merged(self):
        """Test only the operand's filter takes part in the join."""
        operand = q('b', 2).ascending('b')
        operand.limit = 3
        criteria = q('a', 1).or_(operand)
        assert criteria.sort == {}
        assert criteria.limit is None

    def test_empty_filter_still_joins(self):
        """Test joining from an empty filter keeps an empty left operand."""
        assert Criteria().or_(q('b', 2)).filter == {'$or': [{}, B]}


class TestScopes:
    """Test argument-less joins that return a scoped Criteria."""

    def test_or_scope(self):
        """Test the scoped Criteria fills the right-hand side."""
        root = q('a', 1)
        child = root.or_()
        child.equal_to('b', 2)
        assert child is not root
        assert child.owner is root
        assert child.is_scoped
        assert root.filter == {'$or': [A, B]}

    def test_open_or_is_explicit_scope(self):
        """Test the explicit scope-opening form."""
        root = q('a', 1)
        root.open_or().equal_to('b', 2)
        assert root.filter == {'$or': [A, B]}

    def test_and_scope_nested_in_or(self):
        """Test AND inside an OR scope stays inside it."""
        root = q('a', 1)
        child = root.or_().equal_to('b', 2)
        grandchild = child.and_()
        grandchild.equal_to('c', 3)
        assert root.filter == {'$or': [A, {'$and': [B, C]}]}

    def test_or_from_nested_scope_goes_to_root(self):
        """Test OR binds loosest and returns the root."""
        root = q('a', 1)
        grandchild = root.or_().equal_to('b', 2).and_().equal_to('c', 3)
        result = grandchild.or_(q('d', 4))
        assert result is root
        assert root.filter == {'$or': [{'$or': [A, {'$and': [B, C]}]}, D]}

    def test_nor_escapes_and_scope(self):
        """Test NOR applied inside an AND scope wraps the whole AND."""
        root = q('a', 1)
        child = root.and_().equal_to('b', 2)
        result = child.nor(q('c', 3))
        assert result is root
        assert root.filter == {'$nor': [{'$and': [A, B]}, C]}

    def test_nor_stays_inside_or_scope(self):
        """Test NOR binds tighter than OR."""
        root = q('a', 1)
        child = root.or_().equal_to('b', 2)
        result = child.nor(q('c', 3))
        assert result is child
        assert root.filter == {'$or': [A, {'$nor': [B, C]}]}

    def test_nor_scope(self):
        """Test argument-less NOR opens a scope."""
        root = q('a', 1)
        root.nor().equal_to('b', 2)
        assert root.filter == {'$nor': [A, B]}

    def test_and_from_scope_stays_local(self):
        """Test AND with operands applies to the scoped Criteria itself."""
        root = q('a', 1)
        child = root.or_().equal_to('b', 2)
        result = child.and_(q('c', 3))
        assert result is child
        assert root.filter == {'$or': [A, {'$and': [B, C]}]}

    def test_scoped_state_forwards_to_root(self):
        """Test sort, limit, skip and fields of a scope are the root's."""
        root = q('a', 1)
        child = root.or_().equal_to('b', 2).ascending('b')
        child.limit = 5
        child.skip = '2'
        child.fields = ['a', 'b']
        assert root.sort == {'b': 1}
        assert root.limit == 5
        assert root.skip == 2
        assert root.fields == ['a', 'b']

    def test_scoped_serialization_is_root(self):
        """Test a scope serializes the whole query."""
        root = q('a', 1)
        child = root.or_().equal_to('b', 2)
        assert child.to_plain_object() == root.to_plain_object()
        assert child.to_plain_object()['filter'] == {'$or': [A, B]}
        assert child == root

    def test_scoped_offline_check_uses_root(self, monkeypatch):
        """Test the offline check sees the whole query."""
        monkeypatch.setenv('QUERY_RECURSIVE_OFFLINE_CHECK', 'true')
        root = q('a', 1)
        child = root.or_().near('loc', [1, 2])
        assert not root.is_supported_offline()
        assert not child.is_supported_offline()

    def test_joined_near_is_nested(self):
        """Test a joined geo filter is no longer top-level."""
        criteria = Criteria().near('loc', [1, 2]).and_(q('b', 2))
        assert criteria.is_supported_offline()
