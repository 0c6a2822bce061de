"""Insert / update / delete mutations through the generated schema."""

from tests.schema import execute


async def test_insert_returns_rows_with_relations(db_session, populated_db):
    res = await execute(
        """
        mutation {
          postsInsertMany(values: [
            {title: "Fresh", author_id: 4, status: PUBLISHED, published_on: "2024-02-01", attachment: [1, 2, 3]},
            {title: "Second", author_id: 2}
          ]) {
            id title status published_on attachment view_count
            author { name }
          }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    fresh, second = res.data['postsInsertMany']
    assert fresh['title'] == 'Fresh'
    assert fresh['status'] == 'PUBLISHED'
    assert fresh['published_on'] == '2024-02-01'
    assert fresh['attachment'] == [1, 2, 3]
    assert fresh['view_count'] == 0
    assert fresh['author'] == {'name': 'Dave NoPosts'}
    assert second['status'] == 'DRAFT'
    assert second['author'] == {'name': 'Bob Smith'}
    assert fresh['id'] < second['id']


async def test_insert_with_variables_and_defaults(db_session, sample_users):
    res = await execute(
        """
        mutation Add($values: [UsersInsertInput!]!) {
          usersInsertMany(values: $values) { name is_admin created_at }
        }
        """,
        db_session,
        variables={'values': [{'name': 'Eve', 'email': 'eve@example.com'}]},
    )
    assert res.errors is None, res.errors
    [eve] = res.data['usersInsertMany']
    assert eve['name'] == 'Eve'
    assert eve['is_admin'] is False
    assert eve['created_at']


async def test_insert_requires_values(db_session, sample_users):
    res = await execute('mutation { usersInsertMany(values: []) { id } }', db_session)
    [error] = res.errors
    assert error.message == 'No values provided for insert'
    assert error.extensions['table'] == 'users'


async def test_constraint_violation_is_a_storage_error(db_session, sample_users):
    res = await execute(
        'mutation { usersInsertMany(values: [{name: "Dup", email: "alice@example.com"}]) { id } }',
        db_session,
    )
    [error] = res.errors
    assert error.extensions['code'] == 'STORAGE_ERROR'
    assert error.extensions['table'] == 'users'
    # the session was rolled back and is usable again
    res = await execute('query { usersFindMany { id } }', db_session)
    assert res.errors is None, res.errors
    assert len(res.data['usersFindMany']) == 4


async def test_update_returns_updated_rows(db_session, populated_db):
    res = await execute(
        """
        mutation {
          postsUpdateMany(where: {author_id: {eq: 1}}, set: {status: ARCHIVED, rating: 1.5}) {
            id status rating
            author { email }
          }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    rows = sorted(res.data['postsUpdateMany'], key=lambda r: r['id'])
    assert [r['id'] for r in rows] == [1, 2]
    assert all(r['status'] == 'ARCHIVED' and r['rating'] == 1.5 for r in rows)
    assert rows[0]['author'] == {'email': 'alice@example.com'}

    res = await execute('query { postsFindMany(where: {status: {eq: ARCHIVED}}) { id } }', db_session)
    assert sorted(p['id'] for p in res.data['postsFindMany']) == [1, 2, 4]


async def test_update_without_matches(db_session, populated_db):
    res = await execute(
        'mutation { usersUpdateMany(where: {id: {eq: 999}}, set: {name: "Ghost"}) { id } }',
        db_session,
    )
    assert res.errors is None, res.errors
    assert res.data['usersUpdateMany'] == []


async def test_update_requires_values(db_session, populated_db):
    res = await execute('mutation { usersUpdateMany(where: {id: {eq: 1}}, set: {}) { id } }', db_session)
    [error] = res.errors
    assert error.message == 'No values provided for update'


async def test_delete_returns_deleted_rows(db_session, populated_db):
    res = await execute(
        """
        mutation {
          postCommentsDeleteMany(where: {id: {eq: 4}}) {
            id content
            parent { id }
            replies { id }
          }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    assert res.data['postCommentsDeleteMany'] == [
        {'id': 4, 'content': 'Me too', 'parent': None, 'replies': []},
    ]
    res = await execute('query { postCommentsFindMany(where: {id: {eq: 4}}) { id } }', db_session)
    assert res.data['postCommentsFindMany'] == []


async def test_mutations_run_in_order(db_session, sample_users):
    res = await execute(
        """
        mutation {
          first: usersUpdateMany(where: {id: {eq: 2}}, set: {name: "Robert"}) { name }
          second: usersUpdateMany(where: {name: {eq: "Robert"}}, set: {is_admin: true}) { name is_admin }
        }
        """,
        db_session,
    )
    assert res.errors is None, res.errors
    assert res.data['first'] == [{'name': 'Robert'}]
    assert res.data['second'] == [{'name': 'Robert', 'is_admin': True}]
