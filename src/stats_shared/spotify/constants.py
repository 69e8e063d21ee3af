"""Spotify API URLs, OAuth scopes and retry defaults."""

# Spotify Auth
SPOTIFY_ACCOUNTS_BASE = "https://accounts.spotify.com"
SPOTIFY_AUTHORIZE_URL = f"{SPOTIFY_ACCOUNTS_BASE}/authorize"
SPOTIFY_TOKEN_URL = f"{SPOTIFY_ACCOUNTS_BASE}/api/token"

SPOTIFY_SCOPES = (
    "user-read-private",
    "user-read-email",
    "user-read-recently-played",
    "user-top-read",
    "user-read-playback-state",
    "user-read-currently-playing",
)

# Spotify Web API base
SPOTIFY_API_BASE = "https://api.spotify.com/v1"

# Spotify Web API endpoints
ME_URL = f"{SPOTIFY_API_BASE}/me"
RECENTLY_PLAYED_URL = f"{SPOTIFY_API_BASE}/me/player/recently-played"
ARTISTS_URL = f"{SPOTIFY_API_BASE}/artists"
TOP_ARTISTS_URL = f"{SPOTIFY_API_BASE}/me/top/artists"
TOP_TRACKS_URL = f"{SPOTIFY_API_BASE}/me/top/tracks"

TIME_RANGES = ("short_term", "medium_term", "long_term")

# Page limits enforced by the Web API
MAX_RECENTLY_PLAYED_LIMIT = 50
MAX_ARTISTS_PER_REQUEST = 50
MAX_TOP_ITEMS_LIMIT = 50

# Retry defaults
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 1.0  # seconds
DEFAULT_CONCURRENCY_LIMIT = 5
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds
