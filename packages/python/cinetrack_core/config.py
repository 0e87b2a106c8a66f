from datetime import timedelta


# Cache protocol
RECOMMENDATION_TTL = timedelta(hours=1)
DEFAULT_RECOMMENDATION_LIMIT = 12
CATALOG_CACHE_TTL_SEC = 60 * 60  # TMDB responses revalidate hourly
REFRESH_LEASE_TTL_SEC = 5 * 60

# Behavior analysis
VELOCITY_WINDOW_DAYS = 90
EXPECTED_GENRES_PER_TITLE = 0.3  # exploration baseline
MIN_RATINGS_FOR_CONSISTENCY = 5
NEUTRAL_SCORE = 0.5
BINGE_DAILY_THRESHOLD = 3
BINGE_USER_RATIO = 0.1

# Hidden gems: inclusive on both ends
HIDDEN_GEM_MIN_RATING = 7.0
HIDDEN_GEM_MAX_RATING = 9.0
HIDDEN_GEM_MIN_VOTES = 100
HIDDEN_GEM_MAX_VOTES = 1000

# Recommendation generation
MOOD_MIN_VOTE_COUNT = 100
PERSONALIZED_TOP_GENRES = 5
PERSONALIZED_SEED_TITLES = 3
EXPLORATION_MAX_GENRES = 5
EXPLORATION_FALLBACK_GENRES = 3

# Stats caps
STATS_TOP_GENRES = 16
STATS_TOP_DECADES = 8
STATS_FAVORITES = 16
STATS_RECENT = 18
STATS_TOP_PEOPLE = 12
STATS_CAST_PER_TITLE = 10
