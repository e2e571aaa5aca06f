# streamz/metadata.py
"""
Metadata Store: video, genre and user rows in a relational database (SQLAlchemy).

The relay only calls ``get_video``; everything else serves the CRUD layer.
Sessions use ``expire_on_commit=False`` so returned rows stay readable after
the session closes.
"""
from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, create_engine, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, selectinload, sessionmaker
from sqlalchemy.pool import StaticPool

from streamz.errors import Conflict, NotFound

logger = logging.getLogger("streamz.metadata")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def is_valid_id(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (ValueError, TypeError, AttributeError):
        return False
    return True


class Base(DeclarativeBase):
    pass


class Genre(Base):
    __tablename__ = "genres"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(Text, unique=True)
    slug: Mapped[str] = mapped_column(Text, unique=True)  # "action-movies"
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    videos: Mapped[List["Video"]] = relationship(back_populates="genre")


class Video(Base):
    __tablename__ = "videos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    # storage locator; bare key for everything this service uploads
    file_url: Mapped[str] = mapped_column(Text)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text)
    duration: Mapped[Optional[int]] = mapped_column(Integer)  # seconds
    mime_type: Mapped[Optional[str]] = mapped_column(String(255), default="video/mp4")
    genre_id: Mapped[Optional[str]] = mapped_column(ForeignKey("genres.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    genre: Mapped[Optional[Genre]] = relationship(back_populates="videos", lazy="joined")


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(Text, unique=True)
    name: Mapped[str] = mapped_column(Text)
    avatar_url: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class MetadataStore:
    def __init__(self, engine):
        self.engine = engine
        self._session = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str) -> "MetadataStore":
        if url.startswith("sqlite"):
            kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
            engine = create_engine(url, **kwargs)
        else:
            engine = create_engine(url, pool_pre_ping=True, pool_size=10, pool_timeout=10)
        return cls(engine)

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    # ---------- videos ----------

    def get_video(self, video_id: str) -> Optional[Video]:
        if not is_valid_id(video_id):
            return None
        with self._session() as s:
            return s.get(Video, video_id)

    def list_videos(self) -> List[Video]:
        with self._session() as s:
            return list(s.scalars(select(Video).order_by(Video.created_at.desc())).unique())

    def create_video(self, **fields: Any) -> Video:
        with self._session() as s:
            if fields.get("genre_id"):
                self._require_genre(s, fields["genre_id"])
            video = Video(**fields)
            s.add(video)
            s.commit()
            # reload so the joined genre is populated
            return s.get(Video, video.id, populate_existing=True)

    def update_video(self, video_id: str, changes: Dict[str, Any]) -> Video:
        with self._session() as s:
            video = s.get(Video, video_id) if is_valid_id(video_id) else None
            if video is None:
                raise NotFound("Video not found")
            if changes.get("genre_id"):
                self._require_genre(s, changes["genre_id"])
            for k, v in changes.items():
                setattr(video, k, v)
            video.updated_at = _now()
            s.commit()
            return s.get(Video, video_id, populate_existing=True)

    def delete_video(self, video_id: str) -> bool:
        with self._session() as s:
            video = s.get(Video, video_id) if is_valid_id(video_id) else None
            if video is None:
                return False
            s.delete(video)
            s.commit()
            return True

    # ---------- genres ----------

    def _require_genre(self, s, genre_id: str) -> Genre:
        genre = s.get(Genre, genre_id) if is_valid_id(genre_id) else None
        if genre is None:
            raise NotFound(f"Genre {genre_id} not found")
        return genre

    def get_genre(self, genre_id: str) -> Optional[Genre]:
        if not is_valid_id(genre_id):
            return None
        with self._session() as s:
            return s.get(Genre, genre_id)

    def list_genres(self) -> List[Genre]:
        with self._session() as s:
            return list(s.scalars(select(Genre).order_by(Genre.name)))

    def create_genre(self, name: str, slug: Optional[str] = None, description: Optional[str] = None) -> Genre:
        with self._session() as s:
            genre = Genre(name=name.strip(), slug=slug or slugify(name), description=description)
            s.add(genre)
            try:
                s.commit()
            except IntegrityError as e:
                s.rollback()
                raise Conflict("A genre with this name or slug already exists") from e
            return genre

    def update_genre(self, genre_id: str, changes: Dict[str, Any]) -> Genre:
        with self._session() as s:
            genre = self._require_genre(s, genre_id)
            for k, v in changes.items():
                setattr(genre, k, v)
            genre.updated_at = _now()
            try:
                s.commit()
            except IntegrityError as e:
                s.rollback()
                raise Conflict("A genre with this name or slug already exists") from e
            return genre

    def delete_genre(self, genre_id: str) -> bool:
        with self._session() as s:
            genre = s.get(Genre, genre_id, options=[selectinload(Genre.videos)]) if is_valid_id(genre_id) else None
            if genre is None:
                return False
            detached = len(genre.videos)
            # loaded children get genre_id set to NULL on flush
            s.delete(genre)
            s.commit()
            logger.info("Deleted genre %s (%d videos detached)", genre_id, detached)
            return True

    # ---------- users ----------

    _USER_ORDER = {
        "name": User.name.asc(),
        "email": User.email.asc(),
        "created_at": User.created_at.desc(),
    }

    def get_user(self, user_id: str) -> Optional[User]:
        if not is_valid_id(user_id):
            return None
        with self._session() as s:
            return s.get(User, user_id)

    def list_users(
        self,
        *,
        limit: int = 50,
        offset: int = 0,
        sort_by: str = "created_at",
        search: Optional[str] = None,
        active: Optional[bool] = None,
    ) -> Tuple[List[User], int]:
        """Return one page of users plus the total matching the filters."""
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
        if active is not None:
            conditions.append(User.is_active.is_(active))

        with self._session() as s:
            total = s.scalar(select(func.count()).select_from(User).where(*conditions))
            stmt = (
                select(User)
                .where(*conditions)
                .order_by(self._USER_ORDER.get(sort_by, User.created_at.desc()))
                .limit(limit)
                .offset(offset)
            )
            return list(s.scalars(stmt)), total or 0

    def count_users(self) -> Dict[str, int]:
        with self._session() as s:
            total = s.scalar(select(func.count()).select_from(User)) or 0
            active = s.scalar(select(func.count()).select_from(User).where(User.is_active.is_(True))) or 0
        return {"total": total, "active": active, "inactive": total - active}

    def user_growth(
        self, period: str = "month", start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[Tuple[str, int]]:
        """
        Sign-ups per ``period`` (day, week, month or year), oldest first.

        Buckets are labelled the same on every backend:
        ``2026-03-14``, ``2026-W11``, ``2026-03``, ``2026``.
        """
        stmt = select(User.created_at)
        if start is not None:
            stmt = stmt.where(User.created_at >= start)
        if end is not None:
            stmt = stmt.where(User.created_at <= end)
        with self._session() as s:
            stamps = list(s.scalars(stmt))

        counts: Dict[str, int] = {}
        for ts in sorted(stamps):
            label = _period_label(ts, period)
            counts[label] = counts.get(label, 0) + 1
        return list(counts.items())

    def create_user(self, email: str, name: str, avatar_url: Optional[str] = None) -> User:
        with self._session() as s:
            user = User(email=email.strip().lower(), name=name.strip(), avatar_url=avatar_url)
            s.add(user)
            try:
                s.commit()
            except IntegrityError as e:
                s.rollback()
                raise Conflict("A user with this email already exists") from e
            return user

    def update_user(self, user_id: str, changes: Dict[str, Any]) -> User:
        with self._session() as s:
            user = s.get(User, user_id) if is_valid_id(user_id) else None
            if user is None:
                raise NotFound("User not found")
            for k, v in changes.items():
                setattr(user, k, v)
            user.updated_at = _now()
            try:
                s.commit()
            except IntegrityError as e:
                s.rollback()
                raise Conflict("A user with this email already exists") from e
            return user

    def delete_user(self, user_id: str) -> bool:
        with self._session() as s:
            user = s.get(User, user_id) if is_valid_id(user_id) else None
            if user is None:
                return False
            s.delete(user)
            s.commit()
            return True


def _period_label(ts: datetime, period: str) -> str:
    if period == "day":
        return ts.strftime("%Y-%m-%d")
    if period == "week":
        year, week, _ = ts.isocalendar()
        return f"{year}-W{week:02d}"
    if period == "year":
        return ts.strftime("%Y")
    return ts.strftime("%Y-%m")
