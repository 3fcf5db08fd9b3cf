"""Tests for GET /api/arc/leaderboard/<project_id>."""
import uuid
from datetime import datetime

import pytest
from unittest.mock import MagicMock, patch

from arc.engine.participation import LeaderboardUnavailableError


@pytest.fixture(autouse=True)
def offline_social_graph():
    with patch('arc.engine.enrichment.SocialGraphClient', return_value=MagicMock(configured=False)):
        yield


class TestGetLeaderboard:

    def test_returns_ranked_entries(self, client, make_project, make_arena, make_creator, make_mention):
        project = make_project()
        arena = make_arena(project, name='Season 1')
        make_creator(arena, 'alice', arc_points=10)
        make_mention(project, 'bob', likes=4, created_at=datetime(2026, 1, 1))

        resp = client.get(f'/api/arc/leaderboard/{project.id}')

        assert resp.status_code == 200
        data = resp.get_json()
        assert data['ok'] is True
        assert data['arenaId'] == arena.id
        assert data['arenaName'] == 'Season 1'
        assert [(e['twitter_username'], e['rank'], e['score']) for e in data['entries']] == [
            ('alice', 1, 10), ('bob', 2, 4)]
        expected_keys = {
            'twitter_username', 'avatar_url', 'rank', 'base_points', 'multiplier', 'score',
            'is_joined', 'is_auto_tracked', 'follow_verified', 'contribution_pct',
            'delta7d', 'delta1m', 'delta3m', 'ct_heat', 'signal_score', 'trust_band',
        }
        assert set(data['entries'][0]) == expected_keys

    def test_empty_board(self, client, make_project):
        project = make_project()
        data = client.get(f'/api/arc/leaderboard/{project.id}').get_json()
        assert data == {'ok': True, 'entries': [], 'arenaId': None, 'arenaName': None}

    def test_invalid_project_id(self, client):
        resp = client.get('/api/arc/leaderboard/not-a-uuid')
        assert resp.status_code == 400
        assert resp.get_json() == {'ok': False, 'error': 'invalid_project_id'}

    def test_unknown_project(self, client):
        resp = client.get(f'/api/arc/leaderboard/{uuid.uuid4()}')
        assert resp.status_code == 404
        assert resp.get_json()['error'] == 'project_not_found'

    def test_unavailable(self, client, make_project):
        project = make_project()
        with patch('arc.routes.leaderboard.build_leaderboard',
                   side_effect=LeaderboardUnavailableError('Failed to fetch creators')):
            resp = client.get(f'/api/arc/leaderboard/{project.id}')
        assert resp.status_code == 500
        assert resp.get_json() == {'ok': False, 'error': 'leaderboard_unavailable'}

    def test_unexpected_error(self, client, make_project):
        project = make_project()
        with patch('arc.routes.leaderboard.build_leaderboard', side_effect=RuntimeError('boom')):
            resp = client.get(f'/api/arc/leaderboard/{project.id}')
        assert resp.status_code == 500
        assert resp.get_json()['error'] == 'internal_error'
