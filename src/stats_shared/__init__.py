"""Shared persistence, Spotify client, and logging plumbing for the stats services."""
