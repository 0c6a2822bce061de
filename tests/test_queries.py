"""End-to-end query tests against the schema generated from tests.models."""

import json

import pytest
from graphql import graphql

from tests.schema import execute, schema


async def test_find_many_scalar_columns(db_session, populated_db):
    res = await execute(
        """
        query {
          usersFindMany(orderBy: {id: {direction: asc, priority: 1}}) { id name isAdminAlias: is_admin }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    users = res.data['usersFindMany']
    assert [u['name'] for u in users] == ['Alice Johnson', 'Bob Smith', 'Charlie Brown', 'Dave NoPosts']
    assert users[0]['isAdminAlias'] is True
    assert users[1]['isAdminAlias'] is False


async def test_where_order_limit_offset(db_session, populated_db):
    res = await execute(
        """
        query {
          postsFindMany(
            where: {OR: [{status: {eq: PUBLISHED}}, {status: {eq: DRAFT}}]}
            orderBy: {created_at: {direction: desc, priority: 1}}
            limit: 2
            offset: 1
          ) { title status }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    assert res.data['postsFindMany'] == [
        {'title': 'GraphQL is Great', 'status': 'PUBLISHED'},
        {'title': 'First Post', 'status': 'PUBLISHED'},
    ]


async def test_variables_and_like(db_session, populated_db):
    res = await execute(
        """
        query Users($where: UsersFilters) {
          usersFindMany(where: $where) { email }
        }
        """,
        db_session,
        variables={'where': {'name': {'like': '%Smith'}}},
    )
    assert res.errors is None, res.errors
    assert res.data['usersFindMany'] == [{'email': 'bob@example.com'}]


async def test_find_first(db_session, populated_db):
    res = await execute(
        """
        query {
          newest: postsFindFirst(orderBy: {created_at: {direction: desc, priority: 1}}) { title }
          missing: postsFindFirst(where: {title: {eq: "nope"}}) { title }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    assert res.data['newest'] == {'title': 'Getting Started'}
    assert res.data['missing'] is None


async def test_column_types_are_serialised(db_session, populated_db):
    res = await execute(
        """
        query {
          postsFindMany(orderBy: {id: {direction: asc, priority: 1}}, limit: 2) {
            published_on created_at metadata_json attachment view_count rating content
          }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    first, second = res.data['postsFindMany']
    assert first['published_on'] == '2024-01-01'
    assert first['created_at'].startswith('2024-01-01T12:00:00')
    assert first['metadata_json'] == {'tags': ['intro', 'hello'], 'views': 10}
    assert first['attachment'] == [97, 98, 99]
    assert first['rating'] == 4.5
    assert second['view_count'] == 9_000_000_000
    assert second['attachment'] is None
    assert second['rating'] is None
    json.dumps(res.data)


async def test_nested_relations_three_levels(db_session, populated_db):
    res = await execute(
        """
        query {
          usersFindMany(where: {email: {eq: "alice@example.com"}}) {
            name
            posts(orderBy: {id: {direction: asc, priority: 1}}) {
              title
              comments(orderBy: {id: {direction: asc, priority: 1}}) {
                content
                author { name }
              }
            }
          }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    [alice] = res.data['usersFindMany']
    assert [p['title'] for p in alice['posts']] == ['First Post', 'GraphQL is Great']
    comments = alice['posts'][0]['comments']
    assert [c['content'] for c in comments] == ['Great post!', 'Thanks for sharing', 'Glad you liked it', 'Me too']
    assert [c['author']['name'] for c in comments] == ['Bob Smith', 'Charlie Brown', 'Alice Johnson', 'Charlie Brown']
    assert alice['posts'][1]['comments'] == []


async def test_nested_values_match_top_level_values(db_session, populated_db):
    res = await execute(
        """
        query {
          usersFindFirst(where: {email: {eq: "alice@example.com"}}) {
            is_admin
            posts(where: {id: {eq: 1}}) {
              status created_at published_on metadata_json attachment view_count
              author { is_admin created_at }
            }
          }
          postsFindFirst(where: {id: {eq: 1}}) {
            status created_at published_on metadata_json attachment view_count
          }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    nested = dict(res.data['usersFindFirst']['posts'][0])
    author = nested.pop('author')
    assert nested == res.data['postsFindFirst']
    assert author['is_admin'] is True
    assert res.data['usersFindFirst']['is_admin'] is True


async def test_single_relations(db_session, populated_db):
    res = await execute(
        """
        query {
          usersFindMany(orderBy: {id: {direction: asc, priority: 1}}) {
            name
            profile { bio }
          }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    profiles = [u['profile'] for u in res.data['usersFindMany']]
    assert profiles == [{'bio': 'Maintainer'}, {'bio': None}, None, None]


async def test_single_relation_where(db_session, populated_db):
    res = await execute(
        """
        query {
          postsFindMany(orderBy: {id: {direction: asc, priority: 1}}) {
            author(where: {is_admin: {eq: true}}) { name }
          }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    assert [p['author'] for p in res.data['postsFindMany']] == [
        {'name': 'Alice Johnson'}, {'name': 'Alice Johnson'}, None, None,
    ]


async def test_self_referential_relation(db_session, populated_db):
    res = await execute(
        """
        query {
          postCommentsFindMany(where: {parent_id: {isNull: true}}, orderBy: {id: {direction: asc, priority: 1}}) {
            content
            replies {
              content
              parent { content }
              replies { content }
            }
          }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    top, other = res.data['postCommentsFindMany']
    assert top['replies'] == [{
        'content': 'Glad you liked it',
        'parent': {'content': 'Great post!'},
        'replies': [{'content': 'Me too'}],
    }]
    assert other['replies'] == []


async def test_relation_arguments_are_pushed_down(db_session, populated_db):
    res = await execute(
        """
        query {
          postsFindFirst(where: {id: {eq: 1}}) {
            comments(
              where: {content: {notLike: "Great%"}}
              orderBy: {id: {direction: desc, priority: 1}}
              limit: 2
            ) { content }
          }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    assert res.data['postsFindFirst']['comments'] == [{'content': 'Me too'}, {'content': 'Glad you liked it'}]


async def test_aliases_with_different_arguments(db_session, populated_db):
    res = await execute(
        """
        query {
          usersFindFirst(where: {email: {eq: "alice@example.com"}}) {
            published: posts(where: {status: {eq: PUBLISHED}}) { title }
            drafts: posts(where: {status: {eq: DRAFT}}) { title }
            posts { id }
          }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    alice = res.data['usersFindFirst']
    assert len(alice['published']) == 2
    assert alice['drafts'] == []
    assert len(alice['posts']) == 2


async def test_fragments_and_directives(db_session, populated_db):
    res = await execute(
        """
        fragment PostBits on Posts { title }
        query Q($withAuthor: Boolean!) {
          postsFindMany(where: {id: {inArray: [1, 3]}}, orderBy: {id: {direction: asc, priority: 1}}) {
            ...PostBits
            ... on Posts { id }
            author @include(if: $withAuthor) { name }
          }
        }
        """,
        db_session,
        variables={'withAuthor': True},
    )
    assert res.errors is None, res.errors
    assert res.data['postsFindMany'] == [
        {'title': 'First Post', 'id': 1, 'author': {'name': 'Alice Johnson'}},
        {'title': 'SQLAlchemy Tips', 'id': 3, 'author': {'name': 'Bob Smith'}},
    ]


async def test_relation_only_selection(db_session, populated_db):
    res = await execute(
        """
        query {
          postsFindFirst(where: {id: {eq: 4}}) { author { email } }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    assert res.data['postsFindFirst'] == {'author': {'email': 'charlie@example.com'}}


async def test_typename_is_served(db_session, populated_db):
    res = await execute('query { usersFindFirst(where: {id: {eq: 2}}) { __typename id } }', db_session)
    assert res.errors is None, res.errors
    assert res.data['usersFindFirst'] == {'__typename': 'Users', 'id': 2}


async def test_empty_in_array_error_carries_context(db_session, populated_db):
    res = await execute('query { usersFindMany(where: {id: {inArray: []}}) { id } }', db_session)
    assert res.data is None or res.data.get('usersFindMany') is None
    [error] = res.errors
    assert 'empty array' in error.message
    assert error.extensions['code'] == 'ARGUMENT_VALIDATION_ERROR'
    assert error.extensions['column'] == 'id'
    assert error.extensions['operator'] == 'inArray'


async def test_or_conflict_error(db_session, populated_db):
    res = await execute(
        'query { usersFindMany(where: {name: {eq: "x"}, OR: [{id: {eq: 1}}]}) { id } }',
        db_session,
    )
    [error] = res.errors
    assert "Cannot specify both fields and 'OR'" in error.message


async def test_negative_limit_is_rejected(db_session, populated_db):
    res = await execute('query { usersFindMany(limit: -1) { id } }', db_session)
    [error] = res.errors
    assert error.extensions['code'] == 'ARGUMENT_VALIDATION_ERROR'


async def test_missing_session_is_a_storage_error():
    res = await graphql(schema, 'query { usersFindMany { id } }', context_value={})
    [error] = res.errors
    assert error.extensions['code'] == 'STORAGE_ERROR'


@pytest.mark.parametrize('flag, expected', [(True, ['Alice Johnson']), (False, ['Alice Johnson', 'Bob Smith', 'Charlie Brown', 'Dave NoPosts'])])
async def test_false_operator_values_are_ignored(db_session, populated_db, flag, expected):
    res = await execute(
        """
        query Q($flag: Boolean) {
          usersFindMany(where: {is_admin: {eq: $flag}}, orderBy: {id: {direction: asc, priority: 1}}) { name }
        }
        """,
        db_session,
        variables={'flag': flag},
    )
    assert res.errors is None, res.errors
    assert [u['name'] for u in res.data['usersFindMany']] == expected


async def test_empty_or_branch_does_not_widen_the_filter(db_session, populated_db):
    res = await execute(
        'query { usersFindMany(where: {OR: [{name: {eq: "Bob Smith"}}, {name: {eq: null}}]}) { name } }',
        db_session,
    )
    assert res.errors is None, res.errors
    assert res.data['usersFindMany'] == [{'name': 'Bob Smith'}]
