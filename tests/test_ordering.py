import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table, select
from sqlalchemy.dialects import sqlite

from tableql.core.descriptors import describe_table
from tableql.core.ordering import OrderEntry, compile_order
from tableql.exceptions import ArgumentValidationError


@pytest.fixture
def people():
    md = MetaData()
    return describe_table('people', Table(
        'people', md,
        Column('id', Integer, primary_key=True),
        Column('name', String),
    ))


def test_priority_decides_order_not_input_order(people):
    entries = compile_order(people, [
        {'column': 'id', 'direction': 'asc', 'priority': 2},
        {'column': 'name', 'direction': 'desc', 'priority': 1},
    ])
    assert [str(e) for e in entries] == ['name DESC', 'id ASC']


def test_order_by_input_mapping(people):
    entries = compile_order(people, {
        'id': {'direction': 'asc', 'priority': 2},
        'name': {'direction': 'desc', 'priority': 1},
    })
    assert entries == [OrderEntry('name', 'desc', 1), OrderEntry('id', 'asc', 2)]


def test_equal_priorities_keep_input_order(people):
    entries = compile_order(people, [
        {'column': 'name', 'direction': 'asc', 'priority': 1},
        {'column': 'id', 'direction': 'desc', 'priority': 1},
    ])
    assert [e.column for e in entries] == ['name', 'id']


def test_unknown_columns_are_dropped(people):
    entries = compile_order(people, {'missing': {'direction': 'asc', 'priority': 0}, 'id': {'direction': 'desc', 'priority': 5}})
    assert entries == [OrderEntry('id', 'desc', 5)]
    assert compile_order(people, {'missing': {'direction': 'asc', 'priority': 0}}) is None


def test_empty_input_means_no_order(people):
    assert compile_order(people, None) is None
    assert compile_order(people, {}) is None
    assert compile_order(people, []) is None


def test_bad_direction_is_rejected(people):
    with pytest.raises(ArgumentValidationError):
        compile_order(people, [{'column': 'id', 'direction': 'sideways', 'priority': 1}])


def test_clauses(people):
    entries = compile_order(people, [
        {'column': 'name', 'direction': 'desc', 'priority': 1},
        {'column': 'id', 'direction': 'asc', 'priority': 2},
    ])
    src = people.table
    sql = str(select(src.c.id).order_by(*(e.to_clause(src) for e in entries)).compile(dialect=sqlite.dialect()))
    assert sql.endswith('ORDER BY people.name DESC, people.id ASC')
