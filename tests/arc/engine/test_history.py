"""Tests for arc.engine.history — contribution deltas against past cutoffs."""
from datetime import datetime, timedelta

import pytest
from unittest.mock import patch

import arc.engine.history as history
from arc.engine.base import CreatorRow, FollowRow, MentionRow, Participation
from arc.engine.history import apply_deltas, compute_cutoffs, delta_bps, historical_shares
from arc.engine.mentions import aggregate_points
from arc.engine.merger import merge_scores
from arc.engine.participation import resolve_participation
from arc.engine.ranking import rank_entries

NOW = datetime(2026, 3, 1, 12, 0, 0)


def _mention(handle, likes, days_ago):
    return MentionRow(handle=handle, source_handle=handle, likes=likes,
                      created_at=NOW - timedelta(days=days_ago))


def _board(mentions, participation):
    return rank_entries(merge_scores(aggregate_points(mentions), resolve_participation(participation)))


class TestDeltaBps:

    def test_rounds_to_basis_points(self):
        assert delta_bps(50.0, 100.0) == -5000
        assert delta_bps(33.333, 33.33) == 0

    def test_half_rounds_up(self):
        assert delta_bps(0.005, 0.0) == 1
        assert delta_bps(0.0, 0.005) == 0

    def test_none_only_when_both_zero(self):
        assert delta_bps(0.0, 0.0) is None
        assert delta_bps(None, None) is None
        assert delta_bps(None, 0.0) is None
        assert delta_bps(12.5, None) == 1250


class TestCutoffs:

    def test_windows(self):
        cutoffs = compute_cutoffs(NOW)
        assert cutoffs == {
            'delta7d': NOW - timedelta(days=7),
            'delta1m': NOW - timedelta(days=30),
            'delta3m': NOW - timedelta(days=90),
        }


class TestHistoricalShares:

    def test_replays_only_rows_before_cutoff(self):
        mentions = [_mention('alice', 10, 10), _mention('bob', 30, 1)]
        shares = historical_shares(mentions, Participation(), NOW - timedelta(days=7))
        assert shares == {'alice': pytest.approx(100.0)}

    def test_follow_verified_later_not_applied(self):
        participation = Participation(
            arena_id='a1',
            creators=[
                CreatorRow('alice', 'alice', None, 100, None, NOW - timedelta(days=60)),
                CreatorRow('bob', 'bob', None, 100, None, NOW - timedelta(days=60)),
            ],
            follows=[FollowRow('alice', NOW - timedelta(days=2))],
        )
        shares = historical_shares([], participation, NOW - timedelta(days=7))
        assert shares == {'alice': pytest.approx(50.0), 'bob': pytest.approx(50.0)}


class TestApplyDeltas:

    def test_deltas_for_each_window(self):
        mentions = [_mention('alice', 10, 10), _mention('bob', 10, 1)]
        entries = _board(mentions, Participation())

        apply_deltas(entries, mentions, Participation(), now=NOW)
        by_handle = {e.twitter_username: e for e in entries}

        assert by_handle['alice'].delta7d == -5000
        assert by_handle['bob'].delta7d == 5000
        # Nothing existed 30 / 90 days ago
        assert by_handle['alice'].delta1m == 5000
        assert by_handle['bob'].delta3m == 5000

    def test_zero_share_both_times_is_none(self):
        participation = Participation(
            arena_id='a1',
            creators=[CreatorRow('carol', 'carol', None, 0, None, NOW - timedelta(days=100))],
        )
        mentions = [_mention('alice', 10, 100)]
        entries = _board(mentions, participation)

        apply_deltas(entries, mentions, participation, now=NOW)
        carol = next(e for e in entries if e.twitter_username == 'carol')
        alice = next(e for e in entries if e.twitter_username == 'alice')

        assert carol.delta7d is None
        assert carol.delta3m is None
        assert alice.delta7d == 0

    def test_failed_cutoff_leaves_only_that_delta_none(self):
        mentions = [_mention('alice', 10, 10), _mention('bob', 10, 1)]
        entries = _board(mentions, Participation())
        real = history.historical_shares
        month_cutoff = NOW - timedelta(days=30)

        def flaky(m, p, cutoff):
            if cutoff == month_cutoff:
                raise RuntimeError('replay failed')
            return real(m, p, cutoff)

        with patch('arc.engine.history.historical_shares', side_effect=flaky):
            apply_deltas(entries, mentions, Participation(), now=NOW)

        for entry in entries:
            assert entry.delta1m is None
            assert entry.delta7d is not None
            assert entry.delta3m is not None
