"""Tests for arc.engine.participation — joined creators of the active arena."""
from datetime import datetime, timedelta

import pytest
from unittest.mock import MagicMock

from arc.engine.base import AdjustmentRow, CreatorRow, FollowRow, Participation
from arc.engine.participation import (
    LeaderboardUnavailableError, find_active_arena, load_participation, resolve_participation,
)

NOW = datetime(2026, 3, 1, 12, 0, 0)


class TestFindActiveArena:

    def test_none_without_active_arena(self, make_project, make_arena, db_session):
        project = make_project()
        make_arena(project, status='draft')
        assert find_active_arena(db_session, project.id) is None

    def test_ignores_gamified_arenas(self, make_project, make_arena, db_session):
        project = make_project()
        make_arena(project, status='active', kind='gamified')
        assert find_active_arena(db_session, project.id) is None

    def test_most_recent_active_wins(self, make_project, make_arena, db_session):
        project = make_project()
        make_arena(project, created_at=NOW - timedelta(days=30))
        newer = make_arena(project, kind='legacy_ms', created_at=NOW - timedelta(days=2))
        assert find_active_arena(db_session, project.id).id == newer.id


class TestLoadParticipation:

    def test_empty_when_no_arena(self, make_project, db_session):
        project = make_project()
        participation = load_participation(db_session, project.id)
        assert participation.arena_id is None
        assert participation.creators == []

    def test_loads_creators_adjustments_and_verified_follows(
            self, make_project, make_arena, make_creator, make_adjustment, make_follow, db_session):
        project = make_project()
        arena = make_arena(project, name='Season 1')
        make_creator(arena, '@Alice', arc_points=100, profile_id='prof-a')
        make_adjustment(arena, 'prof-a', -10)
        make_follow(project, 'ALICE', verified_at=NOW - timedelta(days=3))
        make_follow(project, 'bob', verified_at=None)

        participation = load_participation(db_session, project.id)

        assert participation.arena_id == arena.id
        assert participation.arena_name == 'Season 1'
        assert [(c.handle, c.source_handle, c.arc_points) for c in participation.creators] == [
            ('alice', 'Alice', 100)]
        assert [a.points_delta for a in participation.adjustments] == [-10]
        assert [f.handle for f in participation.follows] == ['alice']

    def test_creator_read_failure_is_fatal(self):
        session = MagicMock()
        arena = MagicMock(id='a1')
        query = MagicMock()
        query.filter.return_value.order_by.return_value.first.return_value = arena
        broken = MagicMock()
        broken.filter.side_effect = RuntimeError('db down')
        session.query.side_effect = [query, broken]

        with pytest.raises(LeaderboardUnavailableError):
            load_participation(session, 'p1')

    def test_adjustment_failure_is_not_fatal(self):
        session = MagicMock()
        arena = MagicMock(id='a1')
        arena.name = 'Arena'
        arena_query = MagicMock()
        arena_query.filter.return_value.order_by.return_value.first.return_value = arena
        creators_query = MagicMock()
        creators_query.filter.return_value.all.return_value = [
            MagicMock(twitter_username='alice', profile_id=None, arc_points=5, ring=None, created_at=NOW)]
        broken = MagicMock()
        broken.filter.side_effect = RuntimeError('db down')
        follows_query = MagicMock()
        follows_query.filter.return_value.all.return_value = []
        session.query.side_effect = [arena_query, creators_query, broken, follows_query]

        participation = load_participation(session, 'p1')

        assert [c.handle for c in participation.creators] == ['alice']
        assert participation.adjustments == []
        session.rollback.assert_called_once()


class TestResolveParticipation:

    def _participation(self):
        return Participation(
            arena_id='a1',
            arena_name='Arena',
            creators=[
                CreatorRow('alice', 'Alice', 'prof-a', 100, 'core', NOW - timedelta(days=60)),
                CreatorRow('bob', 'bob', None, 50, None, NOW - timedelta(days=3)),
            ],
            adjustments=[
                AdjustmentRow('prof-a', -10, NOW - timedelta(days=40)),
                AdjustmentRow('prof-a', 25, NOW - timedelta(days=1)),
                AdjustmentRow('prof-x', 999, NOW - timedelta(days=1)),
            ],
            follows=[FollowRow('alice', NOW - timedelta(days=20))],
        )

    def test_current_state(self):
        resolved = resolve_participation(self._participation())
        assert resolved['alice'].base_points == 115
        assert resolved['alice'].follow_verified is True
        assert resolved['alice'].ring == 'core'
        assert resolved['bob'].base_points == 50
        assert resolved['bob'].follow_verified is False

    def test_as_of_filters_joins_adjustments_and_follows(self):
        resolved = resolve_participation(self._participation(), as_of=NOW - timedelta(days=30))
        assert set(resolved) == {'alice'}
        assert resolved['alice'].base_points == 90
        assert resolved['alice'].follow_verified is False

    def test_adjustment_without_profile_never_applies(self):
        participation = Participation(
            creators=[CreatorRow('bob', 'bob', None, 50, None, NOW)],
            adjustments=[AdjustmentRow(None, 10, NOW)],
        )
        assert resolve_participation(participation)['bob'].base_points == 50
