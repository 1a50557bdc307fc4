from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger("fitblog.store")


# =========================
# Errores de dominio
# =========================

class BlogError(Exception):
    """Base de los errores recuperables del blog."""


class ConflictError(BlogError):
    pass


class NotFoundError(BlogError):
    pass


class ForbiddenError(BlogError):
    pass


class AuthenticationError(BlogError):
    pass


# =========================
# Entidades
# =========================

@dataclass
class User:
    id: int
    username: str
    member_since: datetime = datetime.min
    avatar_url: Optional[str] = None


@dataclass
class Post:
    id: int
    title: str
    content: str
    author_username: str
    timestamp: datetime = datetime.min
    likes: int = 0


class IdCounter:
    """Monotonic id source: max existing id + 1, never reusing a deleted id."""

    def __init__(self, ids: Iterable[int] = ()):
        self.last = max(ids, default=0)

    def next(self) -> int:
        self.last += 1
        return self.last


# =========================
# Stores en memoria
# =========================

class UserStore:
    def __init__(self, users: Optional[Iterable[User]] = None):
        self._users: List[User] = list(users or [])
        self._ids = IdCounter(u.id for u in self._users)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._users)

    def all(self) -> List[User]:
        return list(self._users)

    def find_by_username(self, username: str) -> Optional[User]:
        for user in self._users:
            if user.username == username:
                return user
        return None

    def find_by_id(self, user_id: Optional[int]) -> Optional[User]:
        if user_id is None:
            return None
        for user in self._users:
            if user.id == user_id:
                return user
        return None

    def create(self, username: str, member_since: Optional[datetime] = None) -> User:
        with self._lock:
            if self.find_by_username(username) is not None:
                raise ConflictError(f"Username {username!r} already exists")

            user = User(
                id=self._ids.next(),
                username=username,
                member_since=member_since or datetime.now(),
            )
            self._users.append(user)

        logger.info("user created id=%s username=%s", user.id, user.username)
        return user

    def set_avatar_url(self, user_id: int, avatar_url: str) -> User:
        with self._lock:
            user = self.find_by_id(user_id)
            if user is None:
                raise NotFoundError(f"No user with id {user_id}")
            user.avatar_url = avatar_url
            return user


class PostStore:
    def __init__(self, posts: Optional[Iterable[Post]] = None):
        self._posts: List[Post] = list(posts or [])
        self._ids = IdCounter(p.id for p in self._posts)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._posts)

    def list_all(self) -> List[Post]:
        """Snapshot of every post, most recent first."""
        return list(reversed(self._posts))

    def list_by_author(self, username: str) -> List[Post]:
        return [p for p in self.list_all() if p.author_username == username]

    def find_by_id(self, post_id: int) -> Optional[Post]:
        for post in self._posts:
            if post.id == post_id:
                return post
        return None

    def create(self, title: str, content: str, author: User, timestamp: Optional[datetime] = None) -> Post:
        with self._lock:
            post = Post(
                id=self._ids.next(),
                title=title,
                content=content,
                author_username=author.username,
                timestamp=timestamp or datetime.now(),
            )
            self._posts.append(post)

        logger.info("post created id=%s author=%s", post.id, post.author_username)
        return post

    def increment_likes(self, post_id: int) -> Post:
        with self._lock:
            post = self.find_by_id(post_id)
            if post is None:
                raise NotFoundError(f"No post with id {post_id}")
            post.likes += 1
            return replace(post)

    def delete_by_id(self, post_id: int, requester: User) -> None:
        with self._lock:
            post = self.find_by_id(post_id)
            if post is None:
                raise NotFoundError(f"No post with id {post_id}")
            if post.author_username != requester.username:
                logger.warning(
                    "forbidden delete post=%s owner=%s requester=%s",
                    post_id, post.author_username, requester.username,
                )
                raise ForbiddenError(f"{requester.username} does not own post {post_id}")
            self._posts.remove(post)

        logger.info("post deleted id=%s by=%s", post_id, requester.username)


# =========================
# Datos de ejemplo
# =========================

SAMPLE_USERS: List[Dict[str, str]] = [
    {"username": "SampleUser", "member_since": "2024-01-01 08:00"},
    {"username": "AnotherUser", "member_since": "2024-01-02 09:00"},
]

SAMPLE_POSTS: List[Dict[str, str]] = [
    {
        "title": "Sample Post",
        "content": "This is a sample post written by me .",
        "username": "SampleUser",
        "timestamp": "2024-01-01 10:00",
    },
    {
        "title": "Another Post",
        "content": "This is another sample post.",
        "username": "AnotherUser",
        "timestamp": "2024-01-02 12:00",
    },
]


def _parse_fecha(texto: str) -> datetime:
    return datetime.strptime(texto, "%Y-%m-%d %H:%M")


def seed_sample_data(users: UserStore, posts: PostStore) -> None:
    for row in SAMPLE_USERS:
        if users.find_by_username(row["username"]) is None:
            users.create(row["username"], member_since=_parse_fecha(row["member_since"]))

    for row in SAMPLE_POSTS:
        author = users.find_by_username(row["username"])
        if author is None:
            raise NotFoundError(f"Sample author {row['username']!r} missing")
        posts.create(row["title"], row["content"], author, timestamp=_parse_fecha(row["timestamp"]))
