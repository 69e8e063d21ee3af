"""Spotify connection management and listening-history sync."""
