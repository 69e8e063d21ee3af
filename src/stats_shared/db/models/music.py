"""Music catalog models: Artist, Song, ListeningEvent."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stats_shared.db.base import Base, utc_now

if TYPE_CHECKING:
    from stats_shared.db.models.user import User


class Artist(Base):
    """Artist metadata, keyed by Spotify artist id."""

    __tablename__ = "artists"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    spotify_artist_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    image_url: Mapped[str | None] = mapped_column(Text)
    popularity: Mapped[int | None] = mapped_column(Integer)
    genres: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    # Relationships
    songs: Mapped[list["Song"]] = relationship("Song", back_populates="artist", passive_deletes=True)


class Song(Base):
    """Track metadata, keyed by Spotify track id. ``duration_ms`` is the track length."""

    __tablename__ = "songs"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    spotify_track_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    artist_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("artists.id", ondelete="CASCADE"), nullable=False, index=True
    )
    album_name: Mapped[str | None] = mapped_column(String(500))
    album_image_url: Mapped[str | None] = mapped_column(Text)
    duration_ms: Mapped[int | None] = mapped_column(Integer)
    popularity: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    # Relationships
    artist: Mapped[Artist] = relationship("Artist", back_populates="songs")
    listening_events: Mapped[list["ListeningEvent"]] = relationship(
        "ListeningEvent", back_populates="song", passive_deletes=True
    )


class ListeningEvent(Base):
    """One play of a song by a user (unique on user_id, song_id, played_at).

    ``duration_seconds`` is how long the user listened, in seconds.
    """

    __tablename__ = "listening_events"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    song_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("songs.id", ondelete="CASCADE"), nullable=False)
    played_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="listening_events")
    song: Mapped[Song] = relationship("Song", back_populates="listening_events")

    __table_args__ = (
        UniqueConstraint("user_id", "song_id", "played_at", name="uq_listening_events_user_song_played"),
        Index("ix_listening_events_user_id", "user_id"),
        Index("ix_listening_events_song_id", "song_id"),
        Index("ix_listening_events_user_played_at", "user_id", "played_at"),
    )
