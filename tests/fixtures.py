"""Database fixtures for tableql tests (shared)."""

from datetime import date, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Post, PostComment, PostStatus, Profile, User


async def create_sample_users(session: AsyncSession):
    """Create and commit the sample users used across tests."""
    users = [
        User(name="Alice Johnson", email="alice@example.com", is_admin=True),
        User(name="Bob Smith", email="bob@example.com", is_admin=False),
        User(name="Charlie Brown", email="charlie@example.com", is_admin=False),
        User(name="Dave NoPosts", email="dave@example.com", is_admin=False),
    ]
    session.add_all(users)
    await session.flush()
    await session.commit()
    return users


async def create_sample_posts(session: AsyncSession, users):
    """Create and commit posts with deterministic timestamps."""
    alice, bob, charlie, _ = users
    base = datetime(2024, 1, 1, 12, 0, 0)
    posts = [
        Post(
            title="First Post",
            content="Hello world!",
            author_id=alice.id,
            status=PostStatus.PUBLISHED,
            published_on=date(2024, 1, 1),
            created_at=base,
            metadata_json={"tags": ["intro", "hello"], "views": 10},
            attachment=b"abc",
            view_count=10,
            rating=4.5,
        ),
        Post(
            title="GraphQL is Great",
            content="I love GraphQL!",
            author_id=alice.id,
            status=PostStatus.PUBLISHED,
            published_on=date(2024, 1, 2),
            created_at=base + timedelta(minutes=15),
            metadata_json={"tags": ["graphql"]},
            view_count=9_000_000_000,
        ),
        Post(
            title="SQLAlchemy Tips",
            content="Some useful tips...",
            author_id=bob.id,
            status=PostStatus.DRAFT,
            created_at=base + timedelta(minutes=30),
        ),
        Post(
            title="Getting Started",
            content=None,
            author_id=charlie.id,
            status=PostStatus.ARCHIVED,
            created_at=base + timedelta(minutes=45),
            rating=3.0,
        ),
    ]
    session.add_all(posts)
    await session.flush()
    await session.commit()
    return posts


async def create_sample_comments(session: AsyncSession, users, posts):
    """Two top-level comments on the first post, with a reply chain under the first."""
    alice, bob, charlie, _ = users
    first = posts[0]
    top = PostComment(content="Great post!", post_id=first.id, author_id=bob.id)
    other = PostComment(content="Thanks for sharing", post_id=first.id, author_id=charlie.id)
    session.add_all([top, other])
    await session.flush()
    reply = PostComment(content="Glad you liked it", post_id=first.id, author_id=alice.id, parent_id=top.id)
    session.add(reply)
    await session.flush()
    nested = PostComment(content="Me too", post_id=first.id, author_id=charlie.id, parent_id=reply.id)
    session.add(nested)
    await session.flush()
    await session.commit()
    return [top, other, reply, nested]


async def create_sample_profiles(session: AsyncSession, users):
    alice, bob, _, _ = users
    profiles = [
        Profile(user_id=alice.id, bio="Maintainer"),
        Profile(user_id=bob.id, bio=None),
    ]
    session.add_all(profiles)
    await session.flush()
    await session.commit()
    return profiles


@pytest.fixture(scope="function")
async def sample_users(db_session: AsyncSession):
    return await create_sample_users(db_session)


@pytest.fixture(scope="function")
async def sample_posts(db_session: AsyncSession, sample_users):
    return await create_sample_posts(db_session, sample_users)


@pytest.fixture(scope="function")
async def sample_comments(db_session: AsyncSession, sample_users, sample_posts):
    return await create_sample_comments(db_session, sample_users, sample_posts)


@pytest.fixture(scope="function")
async def populated_db(db_session: AsyncSession, sample_users, sample_posts, sample_comments):
    profiles = await create_sample_profiles(db_session, sample_users)
    return {
        'users': sample_users,
        'posts': sample_posts,
        'comments': sample_comments,
        'profiles': profiles,
    }
