"""Signed OAuth ``state`` values for the Spotify connect flow."""

import base64
import binascii
import hashlib
import hmac
import time


class OAuthStateManager:
    """Generates and verifies HMAC-signed, expiring OAuth state parameters.

    Format: ``{timestamp}:{payload}.{signature}``, where the payload is the
    urlsafe-base64 post-connect redirect (possibly empty). Stateless: nothing
    is stored server-side.
    """

    def __init__(self, key: str, ttl_seconds: int) -> None:
        self._key = key
        self._ttl_seconds = ttl_seconds

    def generate(self, next_url: str | None = None) -> str:
        """Return a fresh state value, optionally carrying *next_url*."""
        payload = base64.urlsafe_b64encode(next_url.encode()).decode() if next_url else ""
        data = f"{int(time.time())}:{payload}"
        return f"{data}.{self._sign(data)}"

    def verify(self, state: str) -> bool:
        """Check the signature and that the state is younger than the TTL."""
        data, sep, sig = state.partition(".")
        if not sep or not hmac.compare_digest(sig, self._sign(data)):
            return False
        try:
            issued_at = int(data.split(":", 1)[0])
        except ValueError:
            return False
        return 0 <= time.time() - issued_at <= self._ttl_seconds

    def extract_next_url(self, state: str) -> str | None:
        """Return the embedded redirect of a state that already passed :meth:`verify`."""
        data = state.partition(".")[0]
        payload = data.split(":", 1)[1] if ":" in data else ""
        if not payload:
            return None
        try:
            return base64.urlsafe_b64decode(payload.encode()).decode()
        except (binascii.Error, UnicodeDecodeError):
            return None

    def _sign(self, data: str) -> str:
        return hmac.new(self._key.encode(), data.encode(), hashlib.sha256).hexdigest()
