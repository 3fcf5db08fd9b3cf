"""
Centralized configuration — env vars, scoring constants, arena lifecycle values.
"""
import os
from datetime import timedelta


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Sessions ──────────────────────────────────────────────────────────────────
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')

# ── Social Graph Provider ─────────────────────────────────────────────────────
SOCIAL_GRAPH_API_URL = os.getenv('SOCIAL_GRAPH_API_URL', 'https://api.twitterapi.io')
SOCIAL_GRAPH_API_KEY = os.getenv('SOCIAL_GRAPH_API_KEY')
SOCIAL_GRAPH_TIMEOUT = float(os.getenv('SOCIAL_GRAPH_TIMEOUT', '10'))

# ── Avatar resolution ─────────────────────────────────────────────────────────
AVATAR_MENTION_SCAN_LIMIT = int(os.getenv('AVATAR_MENTION_SCAN_LIMIT', '500'))
AVATAR_FETCH_BATCH_SIZE = int(os.getenv('AVATAR_FETCH_BATCH_SIZE', '5'))
AVATAR_FETCH_BATCH_DELAY = float(os.getenv('AVATAR_FETCH_BATCH_DELAY', '0.5'))
AVATAR_FETCH_MAX_RETRIES = 2
AVATAR_RETRY_BACKOFF = 0.3  # seconds × attempt number

# ── Scoring ───────────────────────────────────────────────────────────────────
FOLLOW_VERIFIED_MULTIPLIER = 1.5
BASE_MULTIPLIER = 1.0

# Engagement points per mention: likes + 2×replies + 3×retweets
ENGAGEMENT_WEIGHTS = {
    'likes': 1,
    'replies': 2,
    'retweets': 3,
}

# Trend deltas: response field → lookback window
HISTORY_WINDOWS = {
    'delta7d': timedelta(days=7),
    'delta1m': timedelta(days=30),
    'delta3m': timedelta(days=90),
}

SIGNAL_WINDOW = '7d'

# ── Arena lifecycle ───────────────────────────────────────────────────────────
ARENA_STATUSES = [
    'draft',
    'scheduled',
    'active',
    'ended',
    'cancelled',
]

ARENA_TRANSITIONS = {
    'draft':     {'scheduled', 'active', 'cancelled'},
    'scheduled': {'active', 'cancelled'},
    'active':    {'ended', 'cancelled'},
    'ended':     set(),
    'cancelled': set(),
}

# Arenas in the same group compete for the single "active" slot per project
ARENA_KIND_GROUPS = {
    'mindshare': ('ms', 'legacy_ms'),
    'gamified': ('gamified',),
}
MINDSHARE_KINDS = ARENA_KIND_GROUPS['mindshare']


# ── Access-request backfill ───────────────────────────────────────────────────
BACKFILL_MATCH_WINDOW = timedelta(hours=1)
BACKFILL_DEFAULT_LIMIT = 100
BACKFILL_MAX_LIMIT = 500

# Access-request product type → (entity table, arena kind for new arenas)
REQUEST_PRODUCT_TYPES = {
    'ms':       ('arena', 'ms'),
    'gamified': ('arena', 'gamified'),
    'crm':      ('campaign', None),
}
