"""
Creator metrics — CT heat and signal score calculators.

Both are pure functions over already-loaded data; the engine decides which
mentions to feed in. Signal-score weights come from signal_config.yaml
(falls back to the hardcoded defaults below).

CT heat (0-100):   0.4 × volume + 0.3 × engagement + 0.2 × diversity + 0.1 × influencer
Signal (0-100):    Σ log1p(points) × recency × content × originality × auth × sentiment × join
"""
import math
import os
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

import yaml

from arc.engine.base import as_naive_utc, round_half_up, utcnow

logger = logging.getLogger('services.scoring')


# ── Signal config (YAML with hardcoded fallback) ─────────────────────────────

_signal_config = None


def _default_config():
    """Hardcoded fallback if YAML is missing."""
    return {
        'version': 'default',
        'recency_half_life_hours': {'24h': 12, '7d': 84, '30d': 360},
        'content_weights': {
            'thread': 2.0,
            'analysis': 1.8,
            'meme': 0.8,
            'quote_rt': 1.0,
            'retweet': 0.3,
            'reply': 0.5,
            'other': 1.0,
        },
        'originality_penalty': 0.3,
        'auth_weight': {'floor': 0.5, 'cap': 2.0, 'smart_share': 0.6, 'org_share': 0.4},
        'sentiment_weight': {'floor': 0.7, 'cap': 1.3},
        'join_weight': 1.5,
        'trust_bands': {'A': 80, 'B': 60, 'C': 40},
    }


def load_signal_config():
    """Load signal config from YAML, with in-memory cache and hardcoded fallback."""
    global _signal_config
    if _signal_config is not None:
        return _signal_config

    config_path = os.path.join(os.path.dirname(__file__), 'signal_config.yaml')
    try:
        with open(config_path, 'r') as f:
            _signal_config = yaml.safe_load(f)
        logger.info("Signal config loaded from YAML (version=%s)", _signal_config.get('version', '?'))
    except Exception as e:
        logger.warning("Signal YAML config not found (%s), using defaults", e)
        _signal_config = _default_config()

    return _signal_config


# ── CT heat ──────────────────────────────────────────────────────────────────

def _tiered(value, tiers, top_value):
    """
    Piecewise-linear 0-100 score.

    `tiers` is a list of (threshold, floor, next_threshold, span) from the
    highest threshold down; values >= top_value score 100.
    """
    if value >= top_value:
        return 100.0
    for threshold, floor, upper, span in tiers:
        if value >= threshold:
            return floor + ((value - threshold) / (upper - threshold)) * span
    return 0.0


def compute_ct_heat(mentions_count: int, avg_likes: float, avg_retweets: float,
                    unique_authors: int, influencer_mentions: int = 0) -> int:
    """Crypto-Twitter heat score 0..100 from volume, engagement, author diversity and influencers."""
    volume = _tiered(mentions_count, [(100, 50, 1000, 50), (10, 20, 100, 30), (0, 0, 10, 20)], 1000)
    engagement = _tiered(avg_likes + avg_retweets, [(20, 50, 100, 50), (5, 20, 20, 30), (0, 0, 5, 20)], 100)
    diversity = _tiered(unique_authors, [(20, 50, 100, 50), (0, 0, 20, 50)], 100)
    influencer = _tiered(influencer_mentions, [(3, 50, 10, 50), (0, 0, 3, 50)], 10)

    heat = volume * 0.40 + engagement * 0.30 + diversity * 0.20 + influencer * 0.10
    return round_half_up(max(0.0, min(100.0, heat)))


# ── Content classification ───────────────────────────────────────────────────

_THREAD_NUMBERING = re.compile(r'\d+/\d+')


def classify_content(text: Optional[str]) -> str:
    """thread | analysis | meme | quote_rt | retweet | reply | other (first match wins)."""
    text = text or ''
    lowered = text.lower()
    if _THREAD_NUMBERING.search(text) or 'thread' in lowered or '🧵' in text:
        return 'thread'
    if 'analysis' in lowered or 'deep dive' in lowered:
        return 'analysis'
    if 'meme' in lowered or '😂' in text:
        return 'meme'
    if 'quote' in lowered:
        return 'quote_rt'
    if lowered.startswith('rt @') or lowered.startswith('retweet'):
        return 'retweet'
    if lowered.startswith('@'):
        return 'reply'
    return 'other'


# ── Signal score ─────────────────────────────────────────────────────────────

@dataclass
class SignalPost:
    """One creator post as seen by the signal score."""
    tweet_id: Optional[str]
    engagement_points: int
    created_at: datetime
    content_type: str = 'other'
    is_original: bool = True
    sentiment_score: Optional[float] = None
    smart_score: Optional[float] = None          # 0..1
    audience_org_score: Optional[float] = None   # 0..100


@dataclass
class SignalResult:
    final_score: float
    signal_score: int
    trust_band: str
    smart_followers_count: int = 0


def build_signal_posts(mentions, smart_score: Optional[float] = None,
                       audience_org_score: Optional[float] = None) -> List[SignalPost]:
    """
    Turn a creator's mentions (oldest first) into SignalPosts.

    A post is original when its lowercased, trimmed text has not been seen
    earlier in the list.
    """
    seen = set()
    posts = []
    for m in mentions:
        text = m.text or ''
        normalized = text.lower().strip()
        is_original = normalized not in seen
        seen.add(normalized)
        posts.append(SignalPost(
            tweet_id=m.tweet_id,
            engagement_points=m.engagement_points,
            created_at=m.created_at,
            content_type=classify_content(text),
            is_original=is_original,
            sentiment_score=m.sentiment_score,
            smart_score=smart_score,
            audience_org_score=audience_org_score,
        ))
    return posts


def _clamp(value, low, high):
    return max(low, min(high, value))


def _auth_weight(post: SignalPost, cfg: Dict) -> float:
    smart = post.smart_score if post.smart_score is not None else 0.5
    org = post.audience_org_score / 100 if post.audience_org_score is not None else 0.5
    combined = smart * cfg.get('smart_share', 0.6) + org * cfg.get('org_share', 0.4)
    return _clamp(combined * 2, cfg.get('floor', 0.5), cfg.get('cap', 2.0))


def _sentiment_weight(sentiment_score: Optional[float], cfg: Dict) -> float:
    if sentiment_score is None:
        return 1.0
    return _clamp(0.7 + (sentiment_score / 100) * 0.6, cfg.get('floor', 0.7), cfg.get('cap', 1.3))


def trust_band(signal_score: float, bands: Dict = None) -> str:
    bands = bands or load_signal_config().get('trust_bands', {})
    if signal_score >= bands.get('A', 80):
        return 'A'
    if signal_score >= bands.get('B', 60):
        return 'B'
    if signal_score >= bands.get('C', 40):
        return 'C'
    return 'D'


def compute_signal_score(posts: List[SignalPost], window: str = '7d', is_joined: bool = False,
                         smart_followers_count: int = 0, now: Optional[datetime] = None) -> SignalResult:
    """
    Recency-decayed, content-weighted signal score for one creator.

    Rewards threads and analysis, penalizes duplicates and low-sentiment
    posts, and gives joined creators a flat bonus.
    """
    if not posts:
        return SignalResult(final_score=0.0, signal_score=0, trust_band='D',
                            smart_followers_count=smart_followers_count)

    cfg = load_signal_config()
    half_lives = cfg.get('recency_half_life_hours', {})
    half_life = half_lives.get(window) or half_lives.get('30d', 360)
    content_weights = cfg.get('content_weights', {})
    originality_penalty = cfg.get('originality_penalty', 0.3)
    join = cfg.get('join_weight', 1.5) if is_joined else 1.0
    now = as_naive_utc(now) if now else utcnow()

    total = 0.0
    for post in posts:
        created_at = as_naive_utc(post.created_at) if post.created_at else now
        age_hours = (now - created_at).total_seconds() / 3600
        recency = math.exp(-(age_hours / half_life) * math.log(2))
        content = content_weights.get(post.content_type, 1.0)
        originality = 1.0 if post.is_original else originality_penalty
        total += (
            math.log1p(max(0, post.engagement_points))
            * recency
            * content
            * originality
            * _auth_weight(post, cfg.get('auth_weight', {}))
            * _sentiment_weight(post.sentiment_score, cfg.get('sentiment_weight', {}))
            * join
        )

    final_score = math.floor(total * 100 + 0.5) / 100
    signal = min(100.0, max(0.0, final_score))
    return SignalResult(
        final_score=final_score,
        signal_score=round_half_up(signal),
        trust_band=trust_band(signal, cfg.get('trust_bands')),
        smart_followers_count=smart_followers_count,
    )
