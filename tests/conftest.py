"""Shared test fixtures."""
import uuid
from datetime import datetime, timedelta

import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from arc.database import Base

NOW = datetime(2026, 3, 1, 12, 0, 0)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine('sqlite:///:memory:', connect_args={'check_same_thread': False})
    import arc.models.project
    import arc.models.arena
    import arc.models.arena_creator
    import arc.models.point_adjustment
    import arc.models.follow_verification
    import arc.models.mention
    import arc.models.profile
    import arc.models.campaign
    import arc.models.access_request
    import arc.models.user_role
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_session):
    """Route all get_session() calls to the test session.

    We disable close() so that route handlers calling session.close()
    in their finally blocks don't invalidate the shared test session.
    """
    _real_close = db_session.close
    db_session.close = lambda: None
    with patch('arc.database.get_session', return_value=db_session), \
         patch('arc.services.profile_cache.get_session', return_value=db_session):
        yield db_session
    db_session.close = _real_close


@pytest.fixture
def mock_queue():
    """Mock RQ queue so write-back scheduling never touches Redis."""
    queue = MagicMock()
    with patch('arc.services.profile_cache.get_queue', return_value=queue):
        yield queue


@pytest.fixture
def app():
    """Flask test app."""
    from arc import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


# ── Row factories ────────────────────────────────────────────────────────────

@pytest.fixture
def make_project(db_session):
    from arc.models.project import Project

    def _make(name='Acme', slug=None, **overrides):
        project = Project(id=overrides.pop('id', str(uuid.uuid4())), name=name,
                          slug=slug or name.lower(), **overrides)
        db_session.add(project)
        db_session.commit()
        return project
    return _make


@pytest.fixture
def make_arena(db_session):
    from arc.models.arena import Arena

    def _make(project, status='active', kind='ms', created_at=None, slug=None, **overrides):
        arena_id = overrides.pop('id', str(uuid.uuid4()))
        arena = Arena(
            id=arena_id,
            project_id=project.id,
            name=overrides.pop('name', f'{project.name} Arena'),
            slug=slug or f'{project.slug}-{arena_id[:8]}',
            kind=kind,
            status=status,
            created_at=created_at or NOW - timedelta(days=120),
            **overrides,
        )
        db_session.add(arena)
        db_session.commit()
        return arena
    return _make


@pytest.fixture
def make_creator(db_session):
    from arc.models.arena_creator import ArenaCreator

    def _make(arena, username, arc_points=0, joined_at=None, profile_id=None, ring=None):
        creator = ArenaCreator(
            arena_id=arena.id,
            twitter_username=username,
            arc_points=arc_points,
            profile_id=profile_id,
            ring=ring,
            created_at=joined_at or NOW - timedelta(days=100),
        )
        db_session.add(creator)
        db_session.commit()
        return creator
    return _make


@pytest.fixture
def make_mention(db_session):
    from arc.models.mention import Mention

    def _make(project, handle, likes=0, replies=0, retweets=0, created_at=None,
              is_official=False, **overrides):
        mention = Mention(
            project_id=project.id,
            author_handle=handle,
            likes=likes,
            replies=replies,
            retweets=retweets,
            is_official=is_official,
            created_at=created_at or NOW - timedelta(days=1),
            **overrides,
        )
        db_session.add(mention)
        db_session.commit()
        return mention
    return _make


@pytest.fixture
def make_follow(db_session):
    from arc.models.follow_verification import FollowVerification

    def _make(project, username, verified_at=None):
        follow = FollowVerification(
            project_id=project.id,
            twitter_username=username,
            verified_at=verified_at,
        )
        db_session.add(follow)
        db_session.commit()
        return follow
    return _make


@pytest.fixture
def make_adjustment(db_session):
    from arc.models.point_adjustment import PointAdjustment

    def _make(arena, profile_id, points_delta, created_at=None):
        adj = PointAdjustment(
            arena_id=arena.id,
            creator_profile_id=profile_id,
            points_delta=points_delta,
            reason='test',
            created_at=created_at or NOW - timedelta(days=1),
        )
        db_session.add(adj)
        db_session.commit()
        return adj
    return _make


@pytest.fixture
def make_request(db_session):
    from arc.models.access_request import AccessRequest

    def _make(project, product_type='ms', status='approved', decided_at=None, **overrides):
        req = AccessRequest(
            id=overrides.pop('id', str(uuid.uuid4())),
            project_id=project.id,
            product_type=product_type,
            status=status,
            decided_at=decided_at or NOW - timedelta(days=2),
            **overrides,
        )
        db_session.add(req)
        db_session.commit()
        return req
    return _make


@pytest.fixture
def super_admin(db_session):
    """A user id holding the super_admin role."""
    from arc.models.user_role import UserRole
    user_id = str(uuid.uuid4())
    db_session.add(UserRole(user_id=user_id, role='super_admin'))
    db_session.commit()
    return user_id
