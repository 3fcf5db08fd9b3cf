"""
Shared leaderboard types and helpers.

Every engine step works on plain dataclasses: rows are loaded once from the
data store, then merged, ranked, replayed at historical cutoffs and enriched
without further coupling to SQLAlchemy.
"""
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from arc.config import ENGAGEMENT_WEIGHTS


def normalize_handle(handle: Optional[str]) -> str:
    """Strip leading '@', lowercase, trim. Returns '' for empty input."""
    if not handle:
        return ''
    return handle.strip().lstrip('@').strip().lower()


def utcnow() -> datetime:
    """Naive UTC now — the form SQLite hands back for DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime (Postgres) to naive UTC so comparisons never mix kinds."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def before(value: Optional[datetime], cutoff: Optional[datetime]) -> bool:
    """True when `value` falls strictly before `cutoff` (no cutoff → always True)."""
    if cutoff is None:
        return True
    if value is None:
        return False
    return as_naive_utc(value) < as_naive_utc(cutoff)


def is_valid_uuid(value) -> bool:
    """True for a canonical UUID string (any version)."""
    if not value or not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False


def round_half_up(value: float) -> int:
    """Round halves toward +inf (JavaScript Math.round semantics)."""
    return int(math.floor(value + 0.5))


# ── Loaded rows ───────────────────────────────────────────────────────────────

@dataclass
class MentionRow:
    """One organic mention, as loaded from project_tweets."""
    handle: str                  # normalized
    source_handle: str           # as stored
    likes: int = 0
    replies: int = 0
    retweets: int = 0
    created_at: Optional[datetime] = None
    text: Optional[str] = None
    sentiment_score: Optional[float] = None
    tweet_id: Optional[str] = None

    @property
    def engagement_points(self) -> int:
        return (
            (self.likes or 0) * ENGAGEMENT_WEIGHTS['likes']
            + (self.replies or 0) * ENGAGEMENT_WEIGHTS['replies']
            + (self.retweets or 0) * ENGAGEMENT_WEIGHTS['retweets']
        )


@dataclass
class CreatorRow:
    handle: str
    source_handle: str
    profile_id: Optional[str]
    arc_points: int
    ring: Optional[str]
    joined_at: Optional[datetime]


@dataclass
class AdjustmentRow:
    profile_id: str
    points_delta: int
    created_at: Optional[datetime]


@dataclass
class FollowRow:
    handle: str
    verified_at: Optional[datetime]


@dataclass
class Participation:
    """Everything loaded for the project's active arena (empty when there is none)."""
    arena_id: Optional[str] = None
    arena_name: Optional[str] = None
    creators: List[CreatorRow] = field(default_factory=list)
    adjustments: List[AdjustmentRow] = field(default_factory=list)
    follows: List[FollowRow] = field(default_factory=list)


@dataclass
class ResolvedCreator:
    """A joined creator's state as of a point in time."""
    handle: str
    source_handle: str
    base_points: int
    follow_verified: bool
    profile_id: Optional[str] = None
    ring: Optional[str] = None
    joined_at: Optional[datetime] = None


# ── Computed output ───────────────────────────────────────────────────────────

@dataclass
class LeaderboardEntry:
    """One ranked creator. Computed per request, never persisted."""
    twitter_username: str
    base_points: int = 0
    multiplier: float = 1.0
    score: int = 0
    is_joined: bool = False
    is_auto_tracked: bool = False
    follow_verified: bool = False
    rank: int = 0
    contribution_pct: Optional[float] = None
    delta7d: Optional[int] = None
    delta1m: Optional[int] = None
    delta3m: Optional[int] = None
    ct_heat: Optional[int] = None
    signal_score: Optional[int] = None
    trust_band: Optional[str] = None
    avatar_url: Optional[str] = None

    # Internal — used for tie-breaks and enrichment, not serialized
    ring: Optional[str] = None
    joined_at: Optional[datetime] = None
    profile_id: Optional[str] = None
    source_handle: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'twitter_username': self.twitter_username,
            'avatar_url': self.avatar_url,
            'rank': self.rank,
            'base_points': self.base_points,
            'multiplier': self.multiplier,
            'score': self.score,
            'is_joined': self.is_joined,
            'is_auto_tracked': self.is_auto_tracked,
            'follow_verified': self.follow_verified,
            'contribution_pct': self.contribution_pct,
            'delta7d': self.delta7d,
            'delta1m': self.delta1m,
            'delta3m': self.delta3m,
            'ct_heat': self.ct_heat,
            'signal_score': self.signal_score,
            'trust_band': self.trust_band,
        }


@dataclass
class LeaderboardResult:
    entries: List[LeaderboardEntry]
    arena_id: Optional[str] = None
    arena_name: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'entries': [e.to_dict() for e in self.entries],
            'arenaId': self.arena_id,
            'arenaName': self.arena_name,
        }
