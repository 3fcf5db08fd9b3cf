"""Tests for arc.engine.leaderboard — the full pipeline against an in-memory database."""
import uuid
from datetime import datetime, timedelta

import pytest
from unittest.mock import MagicMock, patch

from arc.engine.leaderboard import ProjectNotFoundError, build_leaderboard, latest_source_handles
from arc.engine.base import MentionRow
from arc.engine.participation import LeaderboardUnavailableError

NOW = datetime(2026, 3, 1, 12, 0, 0)


@pytest.fixture
def offline_client():
    return MagicMock(configured=False)


@pytest.fixture
def seeded(make_project, make_arena, make_creator, make_adjustment, make_follow, make_mention):
    """alice: joined, 100 - 10 adjustment, follow verified. bob: joined 50 + 20 organic. carol: 40 organic."""
    project = make_project()
    arena = make_arena(project, name='Season 1')
    make_creator(arena, '@Alice', arc_points=100, profile_id='prof-a')
    make_adjustment(arena, 'prof-a', -10)
    make_follow(project, 'alice', verified_at=NOW - timedelta(days=3))
    make_creator(arena, 'bob', arc_points=50)
    make_mention(project, 'Bob', likes=20, author_profile_image_url='https://img/bob.png')
    make_mention(project, 'carol', likes=10, replies=3, retweets=8)
    make_mention(project, 'acme', likes=500, is_official=True)
    return project, arena


class TestBuildLeaderboard:

    def test_scores_and_ranks(self, seeded, db_session, offline_client):
        project, arena = seeded

        result = build_leaderboard(db_session, project.id, now=NOW, client=offline_client)

        assert result.arena_id == arena.id
        assert result.arena_name == 'Season 1'
        board = [(e.twitter_username, e.score, e.rank) for e in result.entries]
        assert board == [('alice', 135, 1), ('bob', 70, 2), ('carol', 40, 3)]

        alice, bob, carol = result.entries
        assert alice.multiplier == 1.5
        assert alice.follow_verified is True
        assert alice.is_joined and not alice.is_auto_tracked
        assert bob.base_points == 70
        assert carol.is_auto_tracked and not carol.is_joined
        assert sum(e.contribution_pct for e in result.entries) == pytest.approx(100.0)
        assert alice.contribution_pct == pytest.approx(135 / 245 * 100)

    def test_official_mentions_excluded(self, seeded, db_session, offline_client):
        project, _ = seeded
        result = build_leaderboard(db_session, project.id, now=NOW, client=offline_client)
        assert 'acme' not in {e.twitter_username for e in result.entries}

    def test_deltas_signals_and_avatars_attached(self, seeded, db_session, offline_client):
        project, _ = seeded
        result = build_leaderboard(db_session, project.id, now=NOW, client=offline_client)
        alice, bob, carol = result.entries

        # 7 days ago: alice 100 (no adjustment, not yet verified), bob 50 → 66.67% / 33.33%
        assert alice.delta7d == round((135 / 245 * 100 - 200 / 3) * 100)
        assert carol.delta7d == round(40 / 245 * 100 * 100)
        assert bob.signal_score is not None
        assert alice.ct_heat is None
        assert bob.avatar_url == 'https://img/bob.png'
        assert alice.avatar_url is None

    def test_deterministic(self, seeded, db_session, offline_client):
        project, _ = seeded
        first = build_leaderboard(db_session, project.id, now=NOW, client=offline_client).to_dict()
        second = build_leaderboard(db_session, project.id, now=NOW, client=offline_client).to_dict()
        assert first == second

    def test_auto_tracked_only_without_active_arena(self, make_project, make_mention, db_session,
                                                     offline_client):
        project = make_project()
        make_mention(project, 'dave', likes=3)

        result = build_leaderboard(db_session, project.id, now=NOW, client=offline_client)

        assert result.arena_id is None
        assert [(e.twitter_username, e.score) for e in result.entries] == [('dave', 3)]

    def test_empty_project(self, make_project, db_session, offline_client):
        project = make_project()
        result = build_leaderboard(db_session, project.id, now=NOW, client=offline_client)
        assert result.to_dict() == {'entries': [], 'arenaId': None, 'arenaName': None}

    def test_unknown_project(self, db_session):
        with pytest.raises(ProjectNotFoundError):
            build_leaderboard(db_session, str(uuid.uuid4()), now=NOW)

    def test_creator_read_failure_propagates(self, seeded, db_session):
        project, _ = seeded
        with patch('arc.engine.leaderboard.load_participation',
                   side_effect=LeaderboardUnavailableError('Failed to fetch creators')):
            with pytest.raises(LeaderboardUnavailableError):
                build_leaderboard(db_session, project.id, now=NOW)

    def test_mention_failure_degrades(self, seeded, db_session, offline_client):
        project, _ = seeded
        with patch('arc.engine.mentions.fetch_mentions', side_effect=RuntimeError('db down')):
            result = build_leaderboard(db_session, project.id, now=NOW, client=offline_client)
        assert [(e.twitter_username, e.score) for e in result.entries] == [('alice', 135), ('bob', 50)]


class TestLatestSourceHandles:

    def test_last_spelling_wins(self):
        rows = [MentionRow('alice', 'alice'), MentionRow('alice', 'Alice')]
        assert latest_source_handles(rows) == {'alice': 'Alice'}
